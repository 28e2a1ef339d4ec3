from dataclasses import dataclass
from typing import Generic, List, TypeVar

from badger.domain.errors import ValidationError

T = TypeVar("T")

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total


def check_window(limit: int, offset: int) -> None:
    if not (1 <= limit <= MAX_PAGE_SIZE):
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if offset < 0:
        raise ValidationError("offset must be non-negative")
