#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Miscellaneous error-handling helpers."""

import logging
from functools import wraps
from typing import Callable, Optional, overload, TypeVar, Union

from typing_extensions import ParamSpec

_T = TypeVar("_T")
_Tr_co = TypeVar("_Tr_co", covariant=True)
_P = ParamSpec("_P")


@overload
def log_error(
    logger_name: str,
) -> Callable[[Callable[_P, _Tr_co]], Callable[_P, Optional[_Tr_co]]]: ...


@overload
def log_error(
    logger_name: str, return_on_error: _T = ...
) -> Callable[[Callable[_P, _Tr_co]], Callable[_P, Union[None, _T, _Tr_co]]]: ...


def log_error(
    logger_name: str,
    return_on_error: Optional[_T] = None,
) -> Callable[[Callable[_P, _Tr_co]], Callable[_P, Union[None, _T, _Tr_co]]]:
    """Decorator which catches and writes all exceptions to the given logger.

    Use it for best-effort lookups whose failure must not abort a report.
    """

    def decorator(f: Callable[_P, _Tr_co]) -> Callable[_P, Union[None, _T, _Tr_co]]:
        @wraps(f)
        def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> Union[None, _T, _Tr_co]:
            try:
                return f(*args, **kwargs)
            except Exception:
                logging.getLogger(logger_name).exception(
                    f"An exception occurred in {f.__name__}"
                )
                return return_on_error

        return wrapper

    return decorator
