# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from pathlib import Path
from typing import Dict, List

import pytest

from gemstat.monitoring.gem_info import (
    gem_info_path,
    GemInfoFileClient,
    GemInfoParser,
    NO_PID,
    parse_gem_info,
)
from gemstat.schemas.gpu.memory_usage import MemoryUsage
from typeguard import typechecked


@pytest.mark.parametrize(
    "lines, expected",
    [
        (
            ["pid 42", "1024 0x1 VRAM"],
            {42: MemoryUsage(pid=42, vram_bytes=1024)},
        ),
        (
            ["pid 42", "1024 0x1 GTT", "512 0x2 GTT"],
            {42: MemoryUsage(pid=42, gtt_bytes=1536)},
        ),
        # unknown and differently cased labels go to the "other" bucket
        (
            ["pid 7", "100 0x1 CPU", "200 0x2 vram", "300 0x3 Gtt"],
            {7: MemoryUsage(pid=7, other_bytes=600)},
        ),
        # allocations before any context line
        (
            ["1024 0x1 VRAM", "pid 3", "8 0x2 GTT"],
            {
                NO_PID: MemoryUsage(pid=NO_PID, vram_bytes=1024),
                3: MemoryUsage(pid=3, gtt_bytes=8),
            },
        ),
        # a context line without a valid pid keeps the previous context
        (
            ["pid 5", "pid abc", "10 0x1 VRAM", "pid", "20 0x2 VRAM"],
            {5: MemoryUsage(pid=5, vram_bytes=30)},
        ),
        # a process can appear under several context lines
        (
            ["pid 5", "1 0x1 VRAM", "pid 6", "2 0x1 VRAM", "pid 5", "4 0x2 GTT"],
            {
                5: MemoryUsage(pid=5, vram_bytes=1, gtt_bytes=4),
                6: MemoryUsage(pid=6, vram_bytes=2),
            },
        ),
        # negative pids are accepted verbatim
        (
            ["pid -12", "1 0x1 VRAM"],
            {-12: MemoryUsage(pid=-12, vram_bytes=1)},
        ),
        # pids outside the 32-bit signed range are rejected
        (
            ["pid 5", "pid 99999999999999999999", "pid -2147483649", "1 0x1 VRAM"],
            {5: MemoryUsage(pid=5, vram_bytes=1)},
        ),
        (
            ["pid 2147483647", "1 0x1 VRAM"],
            {2147483647: MemoryUsage(pid=2147483647, vram_bytes=1)},
        ),
    ],
)
@typechecked
def test_parse_gem_info(lines: List[str], expected: Dict[int, MemoryUsage]) -> None:
    assert parse_gem_info(lines) == expected


@pytest.mark.parametrize(
    "line",
    [
        "",
        "   ",
        "1024",
        "1024 0x1",
        "0x1 1024 VRAM",
        "-1024 0x1 VRAM",
        "1.5 0x1 VRAM",
        "1_024 0x1 VRAM",
        f"{2**64} 0x1 VRAM",
        "0x00000001:",
        "0x00000001:      4096 byte",
    ],
)
def test_malformed_allocation_is_ignored(line: str) -> None:
    parser = GemInfoParser()
    parser.ingest("pid 42")

    parser.ingest(line)

    assert parser.usages == {}
    assert parser.current_pid == 42


def test_no_context_yet() -> None:
    parser = GemInfoParser()

    assert parser.current_pid == NO_PID
    assert parser.usages == {}


def test_kernel_record_layout() -> None:
    usages = parse_gem_info(
        [
            "pid     1234 command Xorg:\n",
            "\t0x00000001:      4096 byte VRAM @ 0x0000100000\n",
            "\t0x00000002:     65536 byte  GTT @ 0x0000000000\n",
        ]
    )

    assert usages == {
        1234: MemoryUsage(pid=1234, vram_bytes=4096, gtt_bytes=65536, command="Xorg")
    }


def test_command_is_reset_by_context_without_command() -> None:
    parser = GemInfoParser()
    parser.ingest("pid 1 command Xorg:")
    parser.ingest("pid 2")
    parser.ingest("8 0x1 VRAM")

    assert parser.usages[2].command is None


def test_largest_byte_count() -> None:
    usages = parse_gem_info(["pid 1", f"{2**64 - 1} 0x1 VRAM", "1 0x2 VRAM"])

    # counters are unbounded integers and do not wrap
    assert usages[1].vram_bytes == 2**64


def test_vram_bytes_are_conserved() -> None:
    lines = [
        "pid 1",
        "100 0x1 VRAM",
        "200 0x2 GTT",
        "300 0x3",
        "pid 2",
        "400 0x1 VRAM",
        "pid nope",
        "500 0x2 VRAM",
        "oops 0x3 VRAM",
        "600 0x4 CPU",
    ]

    usages = parse_gem_info(lines)

    assert sum(u.vram_bytes for u in usages.values()) == 1000
    assert sum(u.gtt_bytes for u in usages.values()) == 200
    assert sum(u.other_bytes for u in usages.values()) == 600


def test_parse_sample(sample_gem_info_lines: List[str]) -> None:
    usages = parse_gem_info(sample_gem_info_lines)

    assert usages == {
        1923: MemoryUsage(
            pid=1923, vram_bytes=18874368, gtt_bytes=4096, command="Xorg"
        ),
        2210: MemoryUsage(
            pid=2210, vram_bytes=34603008, gtt_bytes=8396800, command="gnome-shell"
        ),
        3001: MemoryUsage(
            pid=3001, vram_bytes=4194304, other_bytes=65536, command="firefox"
        ),
    }


def test_gem_info_path() -> None:
    assert gem_info_path(0) == Path("/sys/kernel/debug/dri/0/amdgpu_gem_info")
    assert gem_info_path(3) == Path("/sys/kernel/debug/dri/3/amdgpu_gem_info")


def test_file_client(tmp_path: Path) -> None:
    path = tmp_path / "amdgpu_gem_info"
    path.write_text("pid 1\n8 0x1 VRAM\n")

    assert list(GemInfoFileClient().get_lines(path)) == ["pid 1\n", "8 0x1 VRAM\n"]


def test_file_client_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        parse_gem_info(GemInfoFileClient().get_lines(tmp_path / "does_not_exist"))


def test_file_client_invalid_utf8(tmp_path: Path) -> None:
    path = tmp_path / "amdgpu_gem_info"
    path.write_bytes(
        b"pid 7 command \xff\xfe:\n\t0x1: 4096 byte VRAM\npid 8 command Xorg:\n"
        b"\t0x1: 8192 byte  GTT\n"
    )

    usages = parse_gem_info(GemInfoFileClient().get_lines(path))

    assert usages[7].vram_bytes == 4096
    assert usages[7].command == "\ufffd\ufffd"
    assert usages[8] == MemoryUsage(pid=8, gtt_bytes=8192, command="Xorg")
