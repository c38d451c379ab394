from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from numbers import Number
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortSpec:
    """
    Sort on one column. An empty column_name means "keep insertion order".
    """

    column_name: str = ""
    direction: SortDirection = SortDirection.ASC

    @property
    def is_empty(self) -> bool:
        return not self.column_name

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESC

    @classmethod
    def parse(cls, value: Union["SortSpec", Mapping[str, Any], str, None]) -> "SortSpec":
        """
        Accept:
        - None / "" -> empty spec
        - "age", "-age", "age:desc", "age:asc"
        - {"columnName": "age", "direction": "desc"} or {"column_name": ..., "direction": ...}
        - a SortSpec (returned as-is)

        :raises ValueError: on an unknown direction or unsupported type
        """
        if value is None:
            return cls()
        if isinstance(value, SortSpec):
            return value

        if isinstance(value, str):
            text = value.strip()
            if not text:
                return cls()
            if text.startswith("-"):
                return cls(text[1:], SortDirection.DESC)
            column, _, direction = text.partition(":")
            return cls(column.strip(), SortDirection((direction.strip() or "asc").lower()))

        if isinstance(value, Mapping):
            column = value.get("column_name", value.get("columnName", "")) or ""
            direction = value.get("direction") or "asc"
            return cls(str(column), SortDirection(str(direction).lower()))

        raise ValueError(f"Unsupported sort spec: {value!r}")

    def to_dict(self) -> dict:
        return {"column_name": self.column_name, "direction": self.direction.value}


def _value_key(value: Any) -> Tuple[int, Any]:
    # numbers < strings < everything else (compared as text)
    if isinstance(value, Number) and not isinstance(value, complex):
        return (0, value)
    if isinstance(value, str):
        return (1, value)
    return (2, str(value))


def sort_records(records: Iterable[Mapping[str, Any]], spec: Optional[SortSpec]) -> List[Mapping[str, Any]]:
    """
    Stable sort of records on spec.column_name.

    Missing/None values go last whatever the direction. With an empty spec,
    the records are returned in their incoming order.
    """
    items = list(records)
    if spec is None or spec.is_empty:
        return items

    column = spec.column_name
    present = [r for r in items if r.get(column) is not None]
    missing = [r for r in items if r.get(column) is None]

    # reverse=True keeps equal elements in their original order
    present.sort(key=lambda r: _value_key(r.get(column)), reverse=spec.descending)
    return present + missing
