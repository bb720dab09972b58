# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from pathlib import Path
from typing import List

import pytest

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def sample_gem_info_path() -> Path:
    return DATA_DIR / "sample-amdgpu-gem-info.txt"


@pytest.fixture
def sample_gem_info_lines(sample_gem_info_path: Path) -> List[str]:
    with sample_gem_info_path.open() as f:
        return f.readlines()
