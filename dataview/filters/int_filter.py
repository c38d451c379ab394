from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from dataview.filters.base_filter import BaseFilter, is_value_list

logger = logging.getLogger(__name__)


def as_int(value: Any) -> Optional[int]:
    """
    Coerce a value to int the way filter values and record values are compared.

    - ints (and bools) are kept
    - integral floats are converted, other floats give None
    - strings are trimmed then parsed ("12", " 12 ", "12.0")
    - anything else gives None
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            try:
                return as_int(float(text))
            except ValueError:
                return None
    try:
        return as_int(value.item())  # numpy scalars and size-1 arrays
    except (AttributeError, ValueError):
        return None


class IntFilter(BaseFilter):
    """
    Filter on an integer column.

    - single value: record matches if its field equals the value
    - is_multiple: the value is a list, record matches if its field equals any element
    - dont_test_zero: a value of 0 leaves the filter inactive (default)
    """

    type_name = "int"

    def __init__(
        self,
        column_key: str,
        *,
        dont_test_zero: bool = True,
        is_multiple: bool = False,
    ):
        super().__init__(column_key)
        self.dont_test_zero = bool(dont_test_zero)
        self.is_multiple = bool(is_multiple)
        self._values: List[int] = []

    def active_or_not(self, raw_value: Any) -> bool:
        self._filter_value = raw_value
        self._values = []

        if raw_value is None or (isinstance(raw_value, str) and not raw_value):
            return False

        if self.is_multiple:
            items = list(raw_value) if is_value_list(raw_value) else [raw_value]
            for item in items:
                coerced = as_int(item)
                if coerced is not None:
                    self._values.append(coerced)
            return bool(self._values)

        coerced = as_int(raw_value)
        if coerced is None:
            logger.warning(
                "Ignoring non-integer filter value",
                extra={"column_key": self.column_key, "value": repr(raw_value)},
            )
            return False

        if coerced == 0 and self.dont_test_zero:
            return False

        self._values = [coerced]
        return True

    def test(self, record: Mapping[str, Any]) -> bool:
        tested = as_int(record.get(self.column_key))
        if tested is None:
            return False
        return tested in self._values

    @property
    def comparison_values(self) -> List[int]:
        return list(self._values)
