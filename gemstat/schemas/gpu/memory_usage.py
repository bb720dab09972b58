# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from dataclasses import dataclass
from typing import Optional


@dataclass
class MemoryUsage:
    """GEM allocations attributed to a single process."""

    pid: int
    vram_bytes: int = 0
    gtt_bytes: int = 0
    other_bytes: int = 0
    # name printed by the kernel on the "pid ... command ..." line, if any
    command: Optional[str] = None

    @property
    def total_bytes(self) -> int:
        return self.vram_bytes + self.gtt_bytes


@dataclass
class ProcessRow:
    pid: int
    name: str
    path: str
    total_bytes: int
    vram_bytes: int
    gtt_bytes: int
    other_bytes: int
