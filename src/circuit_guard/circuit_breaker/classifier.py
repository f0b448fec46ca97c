"""Decide which failures count against a circuit."""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Iterator
from enum import StrEnum

FailureFilter = Callable[[BaseException], bool]
FailureKind = Callable[[BaseException], Hashable]


class Classification(StrEnum):
    """Outcome of classifying one failure."""

    IGNORE = "ignore"
    COUNT = "count"


def flatten_failures(failure: BaseException) -> Iterator[BaseException]:
    """Yield the leaf failures of ``failure``, descending into exception groups.

    A plain exception yields itself. Nested groups are walked depth-first so
    leaves come out in the order they were raised.
    """
    if isinstance(failure, BaseExceptionGroup):
        for inner in failure.exceptions:
            yield from flatten_failures(inner)
        return
    yield failure


class FailureClassifier:
    """Filters and exclusions applied to a failure before it is counted.

    Filters are predicates evaluated in registration order; the first one
    returning ``True`` marks the failure as ignored. Otherwise the failure's
    kind (by default its exact type, not its base classes) is looked up in the
    excluded kinds. Anything else counts.
    """

    def __init__(
        self,
        *,
        excluded_kinds: Iterable[Hashable] = (),
        filters: Iterable[FailureFilter] = (),
        failure_kind: FailureKind = type,
    ) -> None:
        self.excluded_kinds: frozenset[Hashable] = frozenset(excluded_kinds)
        self.filters: list[FailureFilter] = list(filters)
        self.failure_kind = failure_kind

    def classify(self, failure: BaseException) -> Classification:
        if any(predicate(failure) for predicate in self.filters):
            return Classification.IGNORE
        if self.failure_kind(failure) in self.excluded_kinds:
            return Classification.IGNORE
        return Classification.COUNT

    def counts(self, failure: BaseException) -> bool:
        """Return whether ``failure`` should count against the circuit."""
        return self.classify(failure) == Classification.COUNT
