"""
Partial-success results for bulk operations.

Bulk endpoints never abort on a bad item: each item ends up either as an
ItemOk (with an outcome label such as "created", "updated", "skipped",
"found", "not_found") or as an ItemError carrying a code and message. The
caller reads counters and error lists off the BulkResult.
"""
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass
class ItemOk(Generic[T]):
    index: int
    value: T
    outcome: str = "created"


@dataclass
class ItemError:
    index: int
    code: str
    message: str


ItemResult = Union[ItemOk, ItemError]


@dataclass
class BulkResult(Generic[T]):
    results: list[ItemResult] = field(default_factory=list)

    def ok(self, index: int, value: T, outcome: str = "created") -> None:
        self.results.append(ItemOk(index=index, value=value, outcome=outcome))

    def fail(self, index: int, code: str, message: str) -> None:
        self.results.append(ItemError(index=index, code=code, message=message))

    def count(self, outcome: str) -> int:
        return sum(
            1 for r in self.results if isinstance(r, ItemOk) and r.outcome == outcome
        )

    @property
    def successes(self) -> list[ItemOk]:
        return [r for r in self.results if isinstance(r, ItemOk)]

    @property
    def failures(self) -> list[ItemError]:
        return [r for r in self.results if isinstance(r, ItemError)]

    def values(self, *outcomes: str) -> list[T]:
        """Values of successful items, optionally restricted to some outcomes."""
        return [
            r.value for r in self.successes if not outcomes or r.outcome in outcomes
        ]

    def error_list(self) -> list[dict[str, Any]]:
        return [
            {"index": e.index, "code": e.code, "error": e.message}
            for e in self.failures
        ]


def chunked(items: Sequence[T], size: int) -> Iterator[tuple[int, Sequence[T]]]:
    """Yield (offset, batch) pairs of at most `size` items."""
    if size < 1:
        raise ValueError("batch size must be positive")
    for offset in range(0, len(items), size):
        yield offset, items[offset:offset + size]
