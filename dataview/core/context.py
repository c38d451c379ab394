from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from dataview.core.payloads import Key, Record
from dataview.core.sorting import SortSpec


class ContextState(Enum):
    IDLE = "idle"
    RECOMPUTING = "recomputing"


def page_count_for(total: int, page_size: Optional[int]) -> int:
    """
    Number of pages needed for total rows. Always at least 1, so that
    1 <= current_page <= page_count holds even for an empty view.
    """
    if not page_size or page_size <= 0:
        return 1
    return max(0, total - 1) // page_size + 1


@dataclass
class Context:
    """
    One configuration of a DataSource and the view it produces.

    Fields:

    - name: unique within its DataSource
    - filter_values: filter name -> raw value, given to the filters at each recompute
    - view: primary key -> record, insertion-ordered, sorted by sort_spec after each recompute
    - sort_spec: column/direction used to order the view
    - current_page / page_count: pagination state (1-based)

    - is_active: exactly one context of a DataSource is active once there is at least one
    - is_default: picked as active on creation, and when the active context is removed
    """

    name: str
    filter_values: Dict[str, Any] = field(default_factory=dict)
    view: Dict[Key, Record] = field(default_factory=dict)
    sort_spec: SortSpec = field(default_factory=SortSpec)

    current_page: int = 1
    page_count: int = 1

    is_active: bool = False
    is_default: bool = False
    state: ContextState = ContextState.IDLE

    def records(self) -> List[Record]:
        return list(self.view.values())

    def page(self, page_size: Optional[int]) -> List[Record]:
        """
        :return: the records of current_page, or the whole view if page_size is not set
        """
        records = self.records()
        if not page_size or page_size <= 0:
            return records
        first = (self.current_page - 1) * page_size
        return records[first:first + page_size]

    def update_page_count(self, page_size: Optional[int], *, reset: bool = False) -> None:
        """
        Recompute page_count from the view size. current_page is set back to 1 when
        reset is True or when it no longer fits.
        """
        self.page_count = page_count_for(len(self.view), page_size)
        if reset or self.current_page > self.page_count or self.current_page < 1:
            self.current_page = 1

    def to_dict(self) -> Dict[str, Any]:
        """
        Configuration part of the context (the view is not serialised)
        """
        return {
            "name": self.name,
            "filter_values": dict(self.filter_values),
            "sort": self.sort_spec.to_dict(),
            "current_page": self.current_page,
            "is_default": self.is_default,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Context:
        return cls(
            name=data.get("name"),
            filter_values=dict(data.get("filter_values", data.get("filterValues", {})) or {}),
            sort_spec=SortSpec.parse(data.get("sort")),
            current_page=int(data.get("current_page", 1) or 1),
            is_default=bool(data.get("is_default", data.get("isDefault", False))),
        )
