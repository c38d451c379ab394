from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Hashable, List, Mapping, Optional

Record = Mapping[str, Any]
Key = Hashable


class UpdateMode(Enum):
    FULL = "full"
    DELTA = "delta"


@dataclass
class DeltaBatch:
    """
    Changes of one view (or one store) caused by a single mutation, keyed by primary key.

    - added_lines: records that entered
    - updated_lines: records that were already there and got a new value
    - deleted_lines: records that left
    """

    added_lines: Dict[Key, Record] = field(default_factory=dict)
    updated_lines: Dict[Key, Record] = field(default_factory=dict)
    deleted_lines: Dict[Key, Record] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.added_lines or self.updated_lines or self.deleted_lines)

    def __len__(self) -> int:
        return len(self.added_lines) + len(self.updated_lines) + len(self.deleted_lines)

    def record_entered(self, key: Key, record: Record) -> None:
        # leave-then-enter inside one batch is an update
        if self.deleted_lines.pop(key, None) is not None:
            self.updated_lines[key] = record
        else:
            self.added_lines[key] = record

    def record_updated(self, key: Key, record: Record) -> None:
        # enter-then-update inside one batch is still an addition
        if key in self.added_lines:
            self.added_lines[key] = record
        else:
            self.updated_lines[key] = record

    def record_left(self, key: Key, record: Record) -> None:
        # enter-then-leave inside one batch cancels out
        if self.added_lines.pop(key, None) is not None:
            return
        self.updated_lines.pop(key, None)
        self.deleted_lines[key] = record


@dataclass(frozen=True)
class Pagination:
    is_active: bool
    current_page: int
    page_count: int
    page_size: Optional[int]


@dataclass(frozen=True)
class ViewUpdate:
    """
    Snapshot sent to view-updated subscribers: the (paginated, sorted) view of the active context.
    """

    view: List[Record]
    filter_values: Dict[str, Any]
    pagination: Pagination
    extra: Any = None
    context_name: Optional[str] = None
    total_count: int = 0


@dataclass(frozen=True)
class ContextUpdate:
    """
    Sent to context-updated subscribers. delta is None when the context was re-emitted
    without membership change (re-selection with a resort/refresh policy).

    - context: the context configuration at emission time (see Context.to_dict)
    - view: copy of the whole context view at emission time
    """

    context_name: str
    context: Dict[str, Any]
    delta: Optional[DeltaBatch]
    view: Dict[Key, Record] = field(default_factory=dict)


@dataclass(frozen=True)
class DataUpdate:
    """
    Sent by stores and pipeline stages when their data changed.
    data is a snapshot of the whole map after the change.
    """

    mode: UpdateMode
    added_lines: List[Record] = field(default_factory=list)
    updated_lines: List[Record] = field(default_factory=list)
    deleted_lines: List[Record] = field(default_factory=list)
    data: Dict[Key, Record] = field(default_factory=dict)
    specific_data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ViewManagerUpdate:
    total_count: int
    view: List[Record]
    pagination: Pagination
    context: Any = None
