# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from typing import Final, Optional, Sequence

BYTES_DIVISOR: Final = 1024
BYTES_SUFFIXES: Final[Sequence[str]] = ("", "KiB", "MiB", "GiB")


def checked_log(x: int, base: int) -> Optional[int]:
    """Integer logarithm of `x` in `base`, i.e. the largest n with base**n <= x.

    Only defined for base >= 2 and x >= 1; returns None otherwise.

    Examples:
    >>> checked_log(1024, 1024)
    1
    >>> checked_log(1023, 1024)
    0
    >>> checked_log(8, 1) is None
    True
    """
    if x <= 0 or base <= 1:
        return None
    n = 0
    r = x
    while r >= base:
        r //= base
        n += 1
    return n


def log(x: int, base: int) -> int:
    """Like `checked_log`, but 0 where the logarithm is undefined."""
    n = checked_log(x, base)
    return 0 if n is None else n


def format_bytes(num_bytes: int) -> str:
    """Render a byte count with two decimals and a binary suffix, e.g. '1.50 KiB'.

    Zero is rendered as '0'. Counts below 1 KiB keep an empty suffix after the
    separating space ('512.00 '). Anything from 1 TiB upwards stays in GiB.
    """
    if num_bytes == 0:
        return "0"

    divisions = min(log(num_bytes, BYTES_DIVISOR), len(BYTES_SUFFIXES) - 1)
    result = num_bytes / BYTES_DIVISOR**divisions
    return f"{result:.2f} {BYTES_SUFFIXES[divisions]}"
