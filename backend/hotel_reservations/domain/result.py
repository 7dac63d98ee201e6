from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from .errors import ReservationError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: ReservationError

    @property
    def kind(self) -> str:
        return self.error.kind


Result = Union[Ok[T], Err]
