# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Per-process accounting of the amdgpu `amdgpu_gem_info` debugfs file.

The kernel prints one context line per DRM file, followed by one line per GEM
object allocated through it:

    pid     1234 command Xorg:
            0x00000001:      4096 byte VRAM @ 0x0000100000
            0x00000002:     65536 byte  GTT @ 0x0000000000

Every allocation line is attributed to the most recent context line. Lines
which cannot be interpreted are skipped; a truncated or unknown record never
aborts the pass.
"""
import logging
import re
from pathlib import Path
from typing import Dict, Final, Iterable, Optional, Protocol

from gemstat.schemas.gpu.memory_usage import MemoryUsage

logger = logging.getLogger(__name__)

# allocations seen before any context line are accounted under this pid
NO_PID: Final = -1

GEM_INFO_PATH_TEMPLATE: Final = "/sys/kernel/debug/dri/{}/amdgpu_gem_info"

_MAX_BYTES: Final = 2**64 - 1
_MIN_PID: Final = -(2**31)
_MAX_PID: Final = 2**31 - 1
_SIGNED_INT: Final = re.compile(r"[+-]?[0-9]+")
_UNSIGNED_INT: Final = re.compile(r"\+?[0-9]+")


def gem_info_path(device_index: int) -> Path:
    return Path(GEM_INFO_PATH_TEMPLATE.format(device_index))


class GemInfoClient(Protocol):
    """A source of raw `amdgpu_gem_info` lines."""

    def get_lines(self, path: Path) -> Iterable[str]:
        """Get the lines of the diagnostic file at `path`. Raises OSError if it
        cannot be read.
        """


class GemInfoFileClient(GemInfoClient):
    def get_lines(self, path: Path) -> Iterable[str]:
        # the command name on context lines is not guaranteed to be valid UTF-8
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            for line in f:
                yield line


def _parse_pid(token: str) -> Optional[int]:
    if _SIGNED_INT.fullmatch(token) is None:
        return None
    n = int(token)
    return n if _MIN_PID <= n <= _MAX_PID else None


def _parse_bytes(token: str) -> Optional[int]:
    if _UNSIGNED_INT.fullmatch(token) is None:
        return None
    n = int(token)
    return n if n <= _MAX_BYTES else None


class GemInfoParser:
    """Folds `amdgpu_gem_info` lines into per-process `MemoryUsage` entries.

    An instance owns the state of exactly one pass: feed it every line with
    `ingest`, then read `usages`.
    """

    def __init__(self) -> None:
        self.current_pid: int = NO_PID
        self.current_command: Optional[str] = None
        self.usages: Dict[int, MemoryUsage] = {}

    def ingest(self, line: str) -> None:
        tokens = line.split()
        if not tokens:
            return
        if tokens[0] == "pid":
            self._ingest_context(tokens)
            return
        if tokens[0].endswith(":"):
            # object handle, e.g. "0x00000001:"
            tokens = tokens[1:]
        self._ingest_allocation(tokens)

    def _ingest_context(self, tokens: list[str]) -> None:
        if len(tokens) < 2:
            return
        pid = _parse_pid(tokens[1])
        if pid is None:
            return
        self.current_pid = pid
        if len(tokens) >= 4 and tokens[2] == "command":
            self.current_command = tokens[3].rstrip(":")
        else:
            self.current_command = None

    def _ingest_allocation(self, tokens: list[str]) -> None:
        if len(tokens) < 3:
            return
        num_bytes = _parse_bytes(tokens[0])
        if num_bytes is None:
            return
        memory_type = tokens[2]

        usage = self._get_or_insert(self.current_pid)
        if memory_type == "VRAM":
            usage.vram_bytes += num_bytes
        elif memory_type == "GTT":
            usage.gtt_bytes += num_bytes
        else:
            usage.other_bytes += num_bytes

    def _get_or_insert(self, pid: int) -> MemoryUsage:
        usage = self.usages.get(pid)
        if usage is None:
            usage = MemoryUsage(pid=pid, command=self.current_command)
            self.usages[pid] = usage
        elif usage.command is None:
            usage.command = self.current_command
        return usage


def parse_gem_info(lines: Iterable[str]) -> Dict[int, MemoryUsage]:
    """Consume all `lines` and return the memory usage keyed by pid.

    Errors raised while iterating `lines` propagate; nothing is returned for a
    partially read stream.
    """
    parser = GemInfoParser()
    num_lines = 0
    for line in lines:
        parser.ingest(line)
        num_lines += 1
    logger.debug(f"Parsed {num_lines} lines into {len(parser.usages)} entries")
    return parser.usages
