# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import json
from dataclasses import asdict
from typing import Final, Iterable, List, Mapping, Optional

from gemstat.monitoring.gem_info import NO_PID
from gemstat.monitoring.measurement_units import format_bytes
from gemstat.monitoring.process_info import ProcessInfoClient
from gemstat.schemas.gpu.memory_usage import MemoryUsage, ProcessRow

UNKNOWN: Final = "unknown"
HEADER: Final = ("PID", "PROCESS", "PATH", "TOTAL", "VRAM", "GTT")
ROW_FORMAT: Final = "{0: <10} | {1: <20} | {2: <40} | {3: >15} | {4: >15} | {5: >15}"
SEPARATOR_WIDTH: Final = 130


def sort_usages(usages: Mapping[int, MemoryUsage]) -> List[MemoryUsage]:
    """Entries with a known pid, largest VRAM + GTT first. Ties keep the order in
    which the pids were first seen.
    """
    return sorted(
        (usage for pid, usage in usages.items() if pid != NO_PID),
        key=lambda usage: usage.total_bytes,
        reverse=True,
    )


def _display(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def as_process_rows(
    usages: Iterable[MemoryUsage], process_info: ProcessInfoClient
) -> List[ProcessRow]:
    rows = []
    for usage in usages:
        name = (
            _display(process_info.get_name(usage.pid))
            or _display(usage.command)
            or UNKNOWN
        )
        path = _display(process_info.get_exe(usage.pid)) or UNKNOWN
        rows.append(
            ProcessRow(
                pid=usage.pid,
                name=name,
                path=path,
                total_bytes=usage.total_bytes,
                vram_bytes=usage.vram_bytes,
                gtt_bytes=usage.gtt_bytes,
                other_bytes=usage.other_bytes,
            )
        )
    return rows


def format_table(rows: Iterable[ProcessRow]) -> List[str]:
    lines = [ROW_FORMAT.format(*HEADER), "-" * SEPARATOR_WIDTH]
    for row in rows:
        lines.append(
            ROW_FORMAT.format(
                row.pid,
                row.name,
                row.path,
                format_bytes(row.total_bytes),
                format_bytes(row.vram_bytes),
                format_bytes(row.gtt_bytes),
            )
        )
    return lines


def format_json(rows: Iterable[ProcessRow]) -> str:
    return json.dumps([asdict(row) for row in rows])
