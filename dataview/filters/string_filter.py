from __future__ import annotations

import re
from enum import Enum
from typing import Any, List, Mapping, Optional, Pattern, Union

from dataview.exceptions import ConfigurationError, InvariantViolation
from dataview.filters.base_filter import BaseFilter, is_value_list


class ComparisonLevel(Enum):
    EQUALS = 1
    LIKE = 2
    WILDCARDS = 3
    WILDCARDS_EXACT = 4

    @classmethod
    def parse(cls, value: Union["ComparisonLevel", str, int]) -> "ComparisonLevel":
        """
        Accept the enum itself, its name ("like", "WILDCARDS_EXACT") or the legacy integer code.
        :raises ConfigurationError: for anything else
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        elif isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                pass
        raise ConfigurationError(f"Unknown comparison level '{value}'")


def compile_wildcards(pattern: str, *, exact: bool, test_case: bool) -> Pattern[str]:
    """
    Turn a glob-like pattern into a regex: control characters are escaped and '*'
    stands for any sequence of characters.
    """
    body = re.escape(pattern).replace(r"\*", ".*")
    if exact:
        body = f"^{body}$"
    return re.compile(body, 0 if test_case else re.IGNORECASE)


class StringFilter(BaseFilter):
    """
    Filter on a string column.

    Comparison levels:
    - EQUALS: normalised record value equals the filter value
    - LIKE: filter value is a substring of the record value
    - WILDCARDS: glob pattern found anywhere in the record value
    - WILDCARDS_EXACT: glob pattern matching the whole record value

    Normalisation of the filter value: trimmed (trim_value) and lower-cased unless test_case.
    With is_multiple, the filter value is a list and a record matches if any entry does.
    """

    type_name = "string"

    def __init__(
        self,
        column_key: str,
        *,
        comparison_level: Union[ComparisonLevel, str, int] = ComparisonLevel.EQUALS,
        test_case: bool = False,
        trim_value: bool = True,
        is_multiple: bool = False,
    ):
        super().__init__(column_key)
        self.comparison_level = ComparisonLevel.parse(comparison_level)
        self.test_case = bool(test_case)
        self.trim_value = bool(trim_value)
        self.is_multiple = bool(is_multiple)

        self._values: List[str] = []
        self._patterns: List[Pattern[str]] = []

    def _normalise(self, raw: Any) -> str:
        value = "" if raw is None else str(raw)
        if self.trim_value:
            value = value.strip()
        if not self.test_case:
            value = value.lower()
        return value

    def active_or_not(self, raw_value: Any) -> bool:
        self._filter_value = "" if raw_value is None else raw_value

        if self.is_multiple:
            if raw_value is None:
                raw_items = []
            elif is_value_list(raw_value):
                raw_items = list(raw_value)
            else:
                raw_items = [raw_value]
            values = [self._normalise(v) for v in raw_items]
        else:
            values = [self._normalise(raw_value)]

        self._values = [v for v in values if v]

        if self.comparison_level in (ComparisonLevel.WILDCARDS, ComparisonLevel.WILDCARDS_EXACT):
            exact = self.comparison_level is ComparisonLevel.WILDCARDS_EXACT
            self._patterns = [
                compile_wildcards(v, exact=exact, test_case=self.test_case)
                for v in self._values
            ]
        else:
            self._patterns = []

        return bool(self._values)

    def _record_value(self, record: Mapping[str, Any]) -> str:
        raw = record.get(self.column_key)
        return "" if raw is None else str(raw)

    def test(self, record: Mapping[str, Any]) -> bool:
        tested = self._record_value(record)
        level = self.comparison_level

        if level is ComparisonLevel.EQUALS or level is ComparisonLevel.LIKE:
            if not self.test_case:
                tested = tested.lower()
            if level is ComparisonLevel.EQUALS:
                return any(tested == v for v in self._values)
            return any(v in tested for v in self._values)

        if level is ComparisonLevel.WILDCARDS:
            return any(p.search(tested) is not None for p in self._patterns)

        if level is ComparisonLevel.WILDCARDS_EXACT:
            return any(p.match(tested) is not None for p in self._patterns)

        raise InvariantViolation(
            f"Could not apply string filter on '{self.column_key}': improper comparison level {level!r}"
        )

    @property
    def comparison_value(self) -> Optional[str]:
        """The normalised value used for testing (first one when is_multiple)"""
        return self._values[0] if self._values else None
