from __future__ import annotations

import pytest

from circuit_guard.circuit_breaker import (
    Classification,
    FailureClassifier,
    flatten_failures,
)


class _ExcludedError(Exception):
    pass


class _DerivedError(_ExcludedError):
    pass


class _CodedError(Exception):
    def __init__(self, code: str) -> None:
        super().__init__(f"failed with {code}")
        self.code = code


def test_failures_count_by_default() -> None:
    classifier = FailureClassifier()

    assert classifier.classify(RuntimeError("boom")) == Classification.COUNT
    assert classifier.counts(RuntimeError("boom")) is True


def test_excluded_type_is_ignored_but_subclasses_still_count() -> None:
    classifier = FailureClassifier(excluded_kinds={_ExcludedError})

    assert classifier.classify(_ExcludedError()) == Classification.IGNORE
    assert classifier.classify(_DerivedError()) == Classification.COUNT


def test_first_matching_filter_wins() -> None:
    seen: list[str] = []

    def _match(exc: BaseException) -> bool:
        seen.append("match")
        return True

    def _never_reached(exc: BaseException) -> bool:
        seen.append("unreached")
        return False

    classifier = FailureClassifier(filters=[_match, _never_reached])

    assert classifier.classify(RuntimeError()) == Classification.IGNORE
    assert seen == ["match"]


def test_filters_are_evaluated_before_exclusions() -> None:
    seen: list[BaseException] = []

    def _record(exc: BaseException) -> bool:
        seen.append(exc)
        return False

    failure = _ExcludedError()
    classifier = FailureClassifier(excluded_kinds={_ExcludedError}, filters=[_record])

    assert classifier.classify(failure) == Classification.IGNORE
    assert seen == [failure]


def test_filters_list_is_appendable() -> None:
    classifier = FailureClassifier()
    classifier.filters.append(lambda exc: str(exc) == "expected")

    assert classifier.classify(RuntimeError("expected")) == Classification.IGNORE
    assert classifier.classify(RuntimeError("other")) == Classification.COUNT


def test_custom_failure_kind_tags_are_matched_by_membership() -> None:
    classifier = FailureClassifier(
        excluded_kinds={"not_found"},
        failure_kind=lambda exc: getattr(exc, "code", None),
    )

    assert classifier.classify(_CodedError("not_found")) == Classification.IGNORE
    assert classifier.classify(_CodedError("unavailable")) == Classification.COUNT
    assert classifier.classify(RuntimeError()) == Classification.COUNT


def test_flatten_failures_yields_plain_exception_itself() -> None:
    failure = RuntimeError("single")

    assert list(flatten_failures(failure)) == [failure]


def test_flatten_failures_walks_nested_groups_in_order() -> None:
    first = RuntimeError("first")
    second = ValueError("second")
    third = KeyError("third")
    group = ExceptionGroup(
        "outer",
        [first, ExceptionGroup("inner", [second, third])],
    )

    assert list(flatten_failures(group)) == [first, second, third]


@pytest.mark.parametrize("excluded", [(), (RuntimeError,)])
def test_classification_does_not_depend_on_call_history(
    excluded: tuple[type[Exception], ...],
) -> None:
    classifier = FailureClassifier(excluded_kinds=excluded)
    failure = RuntimeError("boom")

    first = classifier.classify(failure)
    second = classifier.classify(failure)

    assert first == second
