from __future__ import annotations

import copy
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any, Dict, Mapping, Optional

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

# Legacy parameter names that don't follow the plain camelCase -> snake_case rule
_PARAM_ALIASES = {
    "case_sensitive": "test_case",
}


def is_value_list(value: Any) -> bool:
    """
    True for the list forms a multiple-valued filter accepts (lists, tuples, sets, numpy/pandas arrays).
    Strings, bytes and scalars, numpy ones included, are single values.
    """
    if isinstance(value, (str, bytes, Mapping)):
        return False
    if getattr(value, "ndim", None) == 0:
        return False
    return isinstance(value, Iterable)


def normalise_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Return filter params as a flat dict of snake_case keyword arguments.

    Accepts both spellings seen in filter definitions:
    - snake_case: {"column_key": "name", "comparison_level": "LIKE"}
    - camelCase:  {"columnKey": "name", "comparisonLevel": "LIKE"}

    'caseSensitive' / 'case_sensitive' are mapped onto 'test_case'.
    """
    if not params:
        return {}

    normalised: Dict[str, Any] = {}
    for key, value in params.items():
        snake = _CAMEL_BOUNDARY.sub("_", str(key)).lower()
        normalised[_PARAM_ALIASES.get(snake, snake)] = value
    return normalised


class BaseFilter(ABC):
    """
    Abstract base class for all filters.

    Defines the contract that every filter registered in a DataSource must follow
    - expose a 'column_key' - the record field the filter looks at
    - implement 'active_or_not' - normalise and store a raw value, tell whether the filter participates
    - implement 'test' - evaluate the stored value against one record

    A filter instance holds the value of its last activation. DataSources never share an
    activated instance between contexts: they call {@link bind()} which activates a copy.
    """

    type_name: str = None

    def __init__(self, column_key: str):
        if not column_key:
            raise ValueError("A filter needs a non-empty column_key")
        self.column_key = column_key
        self._filter_value: Any = None

    @abstractmethod
    def active_or_not(self, raw_value: Any) -> bool:
        """
        Normalise the raw value and store it as the comparison value
        :param raw_value: the value given for this filter (typically user input)
        :return: True if the filter must take part in record testing
        """
        raise NotImplementedError()

    @abstractmethod
    def test(self, record: Mapping[str, Any]) -> bool:
        """
        Test the stored comparison value against record[column_key]
        :param record: the record to test
        :return: True if the record must be kept
        """
        raise NotImplementedError()

    def bind(self, raw_value: Any) -> Optional["BaseFilter"]:
        """
        Activate a copy of this filter with the given value.
        :return: the activated copy, or None when the value leaves the filter inactive
        """
        bound = copy.copy(self)
        return bound if bound.active_or_not(raw_value) else None

    @property
    def value(self) -> Any:
        """The raw value given at the last activation"""
        return self._filter_value

    def __repr__(self) -> str:
        return f"{type(self).__name__}(column_key={self.column_key!r})"
