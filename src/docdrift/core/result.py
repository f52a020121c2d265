"""Result helpers for per-tag execution.

Docdrift uses `DriftError` for user-facing failures; this module is for the
non-exception return paths of the verifier, where one failing tag must not
abort a pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E


Result = Union[Ok[T], Err[E]]
