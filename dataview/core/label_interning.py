from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Hashable, Iterable, List, Mapping, MutableMapping, Optional

from dataview.exceptions import DataShapeError


@dataclass(frozen=True)
class InternedColumn:
    """
    One column whose repeated string labels are replaced by small integer ids.

    - column: the record field holding the label
    - data_type: the label table to use, defaults to the column name
    - id_key: if set, the id is supplied by the record itself at record[id_key] and the
      label is left in place; otherwise record[column] is replaced by the id
    """

    column: str
    data_type: Optional[str] = None
    id_key: Optional[str] = None

    @property
    def table_name(self) -> str:
        return self.data_type or self.column

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "InternedColumn":
        return cls(
            column=raw["column"],
            data_type=raw.get("data_type", raw.get("dataType")),
            id_key=raw.get("id_key", raw.get("dataTypeKey")),
        )


class LabelTable:
    """
    Append-only label <-> id mapping for one data type.
    Ids are never reassigned nor recycled.
    """

    def __init__(self, data_type: str):
        self.data_type = data_type
        self._label_to_id: Dict[Any, Hashable] = {}
        self._id_to_label: Dict[Hashable, Any] = {}
        self._next_id = 1

    def intern(self, label: Any, supplied_id: Optional[Hashable] = None) -> Hashable:
        """
        Return the id of label, registering it on first occurrence.

        :param supplied_id: external id to bind to a new label (next sequential id otherwise)
        :raises DataShapeError: if supplied_id is already bound to another label
        """
        existing = self._label_to_id.get(label)
        if existing is not None:
            return existing

        if supplied_id is None:
            while self._next_id in self._id_to_label:
                self._next_id += 1
            new_id: Hashable = self._next_id
            self._next_id += 1
        else:
            if supplied_id in self._id_to_label:
                raise DataShapeError(
                    f"Id {supplied_id!r} of '{self.data_type}' already bound to "
                    f"{self._id_to_label[supplied_id]!r}, cannot bind {label!r}"
                )
            new_id = supplied_id

        self._label_to_id[label] = new_id
        self._id_to_label[new_id] = label
        return new_id

    def id_for(self, label: Any) -> Optional[Hashable]:
        return self._label_to_id.get(label)

    def label_for(self, label_id: Any) -> Optional[Any]:
        if label_id in self._id_to_label:
            return self._id_to_label[label_id]
        if isinstance(label_id, str) and label_id.strip().lstrip("-").isdigit():
            return self._id_to_label.get(int(label_id))
        return None

    @property
    def labels(self) -> Mapping[Hashable, Any]:
        """Read-only id -> label mapping"""
        return MappingProxyType(self._id_to_label)

    def __len__(self) -> int:
        return len(self._id_to_label)


class InterningContext:
    """
    A named set of interned columns with their label tables.
    """

    def __init__(self, name: str, columns: Iterable[InternedColumn]):
        self.name = name
        self.columns: List[InternedColumn] = list(columns)
        self._tables: Dict[str, LabelTable] = {}

    def table(self, data_type: str) -> LabelTable:
        table = self._tables.get(data_type)
        if table is None:
            table = self._tables[data_type] = LabelTable(data_type)
        return table

    def process_record(self, record: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        """
        Intern every configured column of the record, in place.
        Columns absent from the record are skipped.

        :raises DataShapeError: on a conflicting supplied id
        """
        for col in self.columns:
            if col.column not in record:
                continue
            table = self.table(col.table_name)
            if col.id_key:
                record[col.id_key] = table.intern(record[col.column], record.get(col.id_key))
            else:
                record[col.column] = table.intern(record[col.column])
        return record

    def id_for(self, data_type: str, label: Any) -> Optional[Hashable]:
        table = self._tables.get(data_type)
        return table.id_for(label) if table is not None else None

    def label_for(self, data_type: str, label_id: Any) -> Optional[Any]:
        table = self._tables.get(data_type)
        return table.label_for(label_id) if table is not None else None

    def labels(self, data_type: str) -> Optional[Mapping[Hashable, Any]]:
        table = self._tables.get(data_type)
        return table.labels if table is not None else None


class LabelInterner:
    """
    Holds every interning context of an application. Passed explicitly to the
    stores that need it.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None):
        self._contexts: Dict[str, InterningContext] = {}
        self._logger = logger or logging.getLogger(__name__)

    def init_context(self, name: str, columns: Iterable[InternedColumn]) -> InterningContext:
        """
        Create a context. Creating the same context twice is reported and the existing one is returned.
        """
        existing = self._contexts.get(name)
        if existing is not None:
            self._logger.error("Cannot create twice the interning context %r", name)
            return existing

        context = InterningContext(name, columns)
        self._contexts[name] = context
        return context

    def reset_context(self, name: str) -> bool:
        return self._contexts.pop(name, None) is not None

    def get_context(self, name: str) -> Optional[InterningContext]:
        return self._contexts.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._contexts
