from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from dataview.core.label_interning import InterningContext
from dataview.core.notifications import Publisher, Subscription
from dataview.core.payloads import DataUpdate, Key, Record, UpdateMode
from dataview.exceptions import DataShapeError
from dataview.validation.errors import ValidationIssue


@dataclass
class IngestResult:
    """
    Per-record classification of one store mutation.

    - added: records stored under a new key
    - replaced: records that overwrote an existing key
    - removed: records deleted from the store
    - rejected: issues for records that could not be stored
    """

    added: List[Record] = field(default_factory=list)
    replaced: List[Record] = field(default_factory=list)
    removed: List[Record] = field(default_factory=list)
    rejected: List[ValidationIssue] = field(default_factory=list)

    @property
    def accepted(self) -> List[Record]:
        return self.added + self.replaced

    @property
    def changed(self) -> bool:
        return bool(self.added or self.replaced or self.removed)


class CanonicalStore:
    """
    Single source of truth: the records of a collection indexed by primary key.

    Includes:
    - full replacement or additive / removal batches, each returning an {@link IngestResult}
    - per-record rejection of records without primary key (the rest of the batch goes on)
    - optional label interning of configured columns on write
    - a push-only notification after each mutation, for pipeline stages to follow

    Insertion order is kept; replacing a record keeps its position.
    """

    def __init__(
        self,
        primary_key: str,
        *,
        interning: Optional[InterningContext] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not primary_key:
            raise ValueError("CanonicalStore needs a primary key")

        self._primary_key = primary_key
        self._interning = interning
        self._logger = logger or logging.getLogger(__name__)
        self._data: Dict[Key, Record] = {}
        self._data_updated: Publisher[DataUpdate] = Publisher("store.data_updated")

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------
    @property
    def primary_key(self) -> str:
        return self._primary_key

    def compute_primary_key(self, record: Mapping[str, Any]) -> Optional[Key]:
        """
        :return: the primary key value of the record, None if absent
        """
        try:
            return record.get(self._primary_key)
        except AttributeError:
            return None

    # -------------------------------------------------------------------------
    # Internal: validate + intern one incoming record
    # -------------------------------------------------------------------------
    def _prepare(self, record: Any, result: IngestResult) -> Optional[Record]:
        key = self.compute_primary_key(record)
        if key is None:
            issue = ValidationIssue(
                "RECORD_PRIMARY_KEY",
                f"Missing primary key '{self._primary_key}' in record, skipping",
                subject=record,
            )
            result.rejected.append(issue)
            self._logger.error(
                issue.message,
                extra={"primary_key": self._primary_key, "record": repr(record)},
            )
            return None

        if self._interning is None:
            return record

        # copy: caller dicts must stay untouched
        stored = dict(record)
        try:
            self._interning.process_record(stored)
        except DataShapeError as e:
            issue = ValidationIssue("RECORD_INTERNING", str(e), subject=record)
            result.rejected.append(issue)
            self._logger.error(issue.message, extra={"primary_key_value": repr(key)})
            return None
        return stored

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------
    def replace_all(self, records: Iterable[Record]) -> IngestResult:
        """
        Replace the whole collection and rebuild the index.
        Every accepted record counts as added.
        """
        result = IngestResult()
        new_data: Dict[Key, Record] = {}

        for record in records:
            stored = self._prepare(record, result)
            if stored is None:
                continue
            new_data[stored[self._primary_key]] = stored

        self._data = new_data
        result.added = list(new_data.values())

        self._notify(UpdateMode.FULL, result)
        return result

    def apply_additions(self, records: Iterable[Record]) -> IngestResult:
        """
        Insert new records and overwrite existing ones (same key, new value).
        """
        result = IngestResult()

        for record in records:
            stored = self._prepare(record, result)
            if stored is None:
                continue
            key = stored[self._primary_key]
            if key in self._data:
                result.replaced.append(stored)
            else:
                result.added.append(stored)
            self._data[key] = stored

        if result.changed:
            self._notify(UpdateMode.DELTA, result)
        return result

    def apply_removals(self, keys: Iterable[Key]) -> IngestResult:
        """
        Delete records by primary key. Unknown keys are ignored.
        """
        result = IngestResult()
        for key in keys:
            removed = self._data.pop(key, None)
            if removed is not None:
                result.removed.append(removed)

        if result.changed:
            self._notify(UpdateMode.DELTA, result)
        return result

    def reset(self) -> IngestResult:
        """Remove every record."""
        result = IngestResult(removed=list(self._data.values()))
        self._data = {}
        if result.changed:
            self._notify(UpdateMode.DELTA, result)
        return result

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------
    def _notify(self, mode: UpdateMode, result: IngestResult) -> None:
        if not self._data_updated.subscriber_count:
            return
        self._data_updated.publish(
            DataUpdate(
                mode=mode,
                added_lines=list(result.added),
                updated_lines=list(result.replaced),
                deleted_lines=list(result.removed),
                data=dict(self._data),
            )
        )

    @property
    def on_data_updated(self) -> Publisher[DataUpdate]:
        return self._data_updated

    def subscribe(self, callback) -> Subscription:
        return self._data_updated.subscribe(callback)

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------
    def get(self, key: Key) -> Optional[Record]:
        return self._data.get(key)

    def keys(self) -> List[Key]:
        return list(self._data)

    @property
    def records(self) -> List[Record]:
        return list(self._data.values())

    @property
    def data_map(self) -> Mapping[Key, Record]:
        """Read-only live view of the key -> record index"""
        return MappingProxyType(self._data)

    @property
    def interning(self) -> Optional[InterningContext]:
        return self._interning

    def __contains__(self, key: Key) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._data.values()))
