"""Minimal Ok/Err result type used for infrastructure outcomes.

Store and push calls return ``Result[T, E]`` instead of raising, so the
scheduler can branch on per-task failures without try/except around every
step. Only process boundaries convert an ``Err`` into an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeGuard, TypeVar

from typing_extensions import TypeAliasType

T = TypeVar('T')
E = TypeVar('E')


@dataclass(slots=True, frozen=True)
class Ok(Generic[T]):
    ok_value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False


@dataclass(slots=True, frozen=True)
class Err(Generic[E]):
    err_value: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True


Result = TypeAliasType('Result', Ok[T] | Err[E], type_params=(T, E))


def is_ok(result: Ok[T] | Err[E]) -> TypeGuard[Ok[T]]:
    return isinstance(result, Ok)


def is_err(result: Ok[T] | Err[E]) -> TypeGuard[Err[E]]:
    return isinstance(result, Err)
