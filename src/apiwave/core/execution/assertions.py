"""Response assertion evaluation."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from apiwave.core.execution.extraction import find_value, is_missing, parse_json, scalar_to_text
from apiwave.core.execution.models import AssertionResult, AssertionType
from apiwave.core.scenario.models import ExpectedResult, FieldMatcher, MatcherKind
from apiwave.transport.http import HttpResponse

logger = logging.getLogger(__name__)


def _text(value: Any) -> Optional[str]:
    if is_missing(value):
        return None
    if isinstance(value, (dict, list)):
        return str(value)
    return scalar_to_text(value)


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or is_missing(value):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


class AssertionExecutor:
    """Evaluate an ExpectedResult against a received response."""

    def verify(self, expected: ExpectedResult, response: HttpResponse) -> list[AssertionResult]:
        """Evaluate every configured expectation.

        Args:
            expected: Expectations from the step definition
            response: The response that was received

        Returns:
            One AssertionResult per configured expectation, in a stable order
        """
        results = []

        if expected.status is not None:
            results.append(self.status_code(response.status, expected.status))

        if expected.status_range is not None:
            results.append(self.status_range(response.status, expected.status_range))

        for needle in expected.body_contains:
            results.append(self.body_contains(response.body, needle))

        if expected.body_fields:
            document = parse_json(response.body)
            for path, matcher in expected.body_fields.items():
                results.append(self.body_field(document, path, matcher))

        for name, value in expected.headers.items():
            results.append(self.header(response.headers, name, value))

        return results

    def status_code(self, actual: int, expected: int) -> AssertionResult:
        passed = actual == expected
        return AssertionResult(
            type=AssertionType.STATUS_CODE,
            expected=str(expected),
            actual=str(actual),
            passed=passed,
            message=None if passed else f"Expected status {expected} but got {actual}",
        )

    def status_range(self, actual: int, expected: tuple[int, int]) -> AssertionResult:
        low, high = expected
        passed = low <= actual <= high
        return AssertionResult(
            type=AssertionType.STATUS_RANGE,
            expected=f"{low}-{high}",
            actual=str(actual),
            passed=passed,
            message=None if passed else f"Expected status in range {low}-{high} but got {actual}",
        )

    def body_contains(self, body: Optional[str], needle: str) -> AssertionResult:
        passed = body is not None and needle in body
        return AssertionResult(
            type=AssertionType.BODY_CONTAINS,
            expected=needle,
            actual="found" if passed else "not found",
            passed=passed,
            message=None if passed else f"Body does not contain '{needle}'",
        )

    def header(self, headers: dict[str, str], name: str, expected: str) -> AssertionResult:
        lowered = {k.lower(): v for k, v in headers.items()}
        actual = lowered.get(name.lower())
        passed = actual == expected
        return AssertionResult(
            type=AssertionType.HEADER_VALUE,
            field=name,
            expected=expected,
            actual=actual,
            passed=passed,
            message=None if passed else f"Header '{name}' expected '{expected}' but got '{actual}'",
        )

    def body_field(self, document: Any, path: str, matcher: FieldMatcher) -> AssertionResult:
        """Check one JSON body field against a matcher."""
        value = find_value(document, path)
        actual = _text(value)
        present = not is_missing(value) and value is not None
        kind = matcher.kind

        if kind == MatcherKind.EXACT:
            expected = scalar_to_text(matcher.value) or str(matcher.value)
            passed = actual == expected
            return self._field_result(AssertionType.BODY_FIELD_EXACT, path, expected, actual, passed,
                                      f"Field '{path}' expected '{expected}' but got '{actual}'")

        if kind == MatcherKind.ANY:
            exists = present
            return self._field_result(AssertionType.BODY_FIELD_EXISTS, path, "exists",
                                      "exists" if exists else "missing", exists,
                                      f"Field '{path}' does not exist")

        if kind == MatcherKind.REGEX:
            pattern = str(matcher.value)
            passed = actual is not None and re.fullmatch(pattern, actual) is not None
            return self._field_result(AssertionType.BODY_FIELD_REGEX, path, pattern, actual, passed,
                                      f"Field '{path}' does not match pattern '{pattern}'")

        if kind in (MatcherKind.GREATER_THAN, MatcherKind.LESS_THAN):
            number = _number(value)
            if kind == MatcherKind.GREATER_THAN:
                assertion_type, symbol = AssertionType.BODY_FIELD_GREATER_THAN, ">"
                passed = number is not None and number > matcher.value
            else:
                assertion_type, symbol = AssertionType.BODY_FIELD_LESS_THAN, "<"
                passed = number is not None and number < matcher.value
            return self._field_result(assertion_type, path, f"{symbol} {matcher.value}", actual, passed,
                                      f"Field '{path}' expected {symbol} {matcher.value} but got '{actual}'")

        if kind == MatcherKind.ONE_OF:
            options = [scalar_to_text(v) or str(v) for v in matcher.value]
            passed = actual in options
            return self._field_result(AssertionType.BODY_FIELD_ONE_OF, path, ", ".join(options), actual,
                                      passed, f"Field '{path}' expected one of [{', '.join(options)}] "
                                              f"but got '{actual}'")

        if kind == MatcherKind.NOT_NULL:
            return self._field_result(AssertionType.BODY_FIELD_NOT_NULL, path, "not null",
                                      "not null" if present else "null", present,
                                      f"Field '{path}' is null")

        # MatcherKind.IS_NULL
        return self._field_result(AssertionType.BODY_FIELD_NULL, path, "null",
                                  "not null" if present else "null", not present,
                                  f"Field '{path}' is not null")

    @staticmethod
    def _field_result(
        assertion_type: AssertionType,
        path: str,
        expected: Optional[str],
        actual: Optional[str],
        passed: bool,
        failure_message: str,
    ) -> AssertionResult:
        return AssertionResult(
            type=assertion_type,
            field=path,
            expected=expected,
            actual=actual,
            passed=passed,
            message=None if passed else failure_message,
        )
