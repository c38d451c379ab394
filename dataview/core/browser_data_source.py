from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from dataview.core.notifications import Publisher, Subscription, SubscriptionManager
from dataview.core.payloads import DataUpdate, Key, Record, UpdateMode
from dataview.exceptions import ConfigurationError
from dataview.filters import BaseFilter, FilterRegistry, create_default_filter_registry, normalise_params


class UpstreamSource(Protocol):
    """What a BrowserDataSource needs from the stage it reads from"""

    @property
    def primary_key(self) -> str: ...

    @property
    def data_map(self) -> Mapping[Key, Record]: ...

    @property
    def on_data_updated(self) -> Publisher[DataUpdate]: ...


class BrowserDataSource:
    """
    One filtering stage of an in-memory pipeline.

    Reads from an upstream holding the reference data (a {@link CanonicalStore} or another
    BrowserDataSource), keeps its own filtered view, and tells its own subscribers what changed.
    Chaining stages gives cascading filters, each stage owning its view.

    Unlike {@link DataSource} there is a single set of filter values and no sort/pagination.
    """

    def __init__(
        self,
        upstream: UpstreamSource,
        *,
        name: str = "default",
        update_view_on_filter_change: bool = False,
        follow_upstream: bool = True,
        filter_registry: Optional[FilterRegistry] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._upstream = upstream
        self._primary_key = upstream.primary_key
        self._name = name
        self._update_view_on_filter_change = update_view_on_filter_change
        self._registry = filter_registry or create_default_filter_registry()
        self._logger = logger or logging.getLogger(__name__)

        self._data_map: Dict[Key, Record] = {}
        self._specific_data: Dict[str, Any] = {}

        self._filter_def: Dict[str, BaseFilter] = {}
        self._active_filters_map: Dict[str, BaseFilter] = {}

        self._data_updated: Publisher[DataUpdate] = Publisher(f"{name}.data_updated")
        self._sub_manager = SubscriptionManager(self)

        if follow_upstream:
            self._sub_manager.add(upstream.on_data_updated.subscribe(self._on_upstream_updated))

    # -------------------------------------------------------------------------
    # Filter management
    # -------------------------------------------------------------------------
    def add_filter(
        self,
        filter_name: str,
        filter_type: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> "BrowserDataSource":
        """
        Register a filter for this stage. A duplicate name is reported and ignored.

        Raises:
            ConfigurationError: if filter_type is unknown or params are invalid
        """
        if filter_name in self._filter_def:
            self._logger.error(
                "Cannot add twice filter [%s] to BrowserDataSource [%s]", filter_name, self._name
            )
            return self

        kwargs = normalise_params(params)
        kwargs.setdefault("column_key", filter_name)
        try:
            instance = self._registry.create(filter_type, **kwargs)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid params for filter '{filter_name}': {e}") from e

        if instance is None:
            self._logger.critical("Can't find filterType [%s]", filter_type)
            raise ConfigurationError(f"Unknown filter type '{filter_type}' for filter '{filter_name}'")

        self._filter_def[filter_name] = instance
        return self

    def update_filter_values(self, filter_values: Mapping[str, Any]) -> None:
        """
        Activate/deactivate filters with new values. Unknown filter names are reported and skipped.
        """
        for filter_name, value in filter_values.items():
            instance = self._filter_def.get(filter_name)
            if instance is None:
                self._logger.error(
                    "Filter [%s] does not exist in BrowserDataSource [%s]", filter_name, self._name
                )
                continue

            if instance.active_or_not(value):
                self._active_filters_map[filter_name] = instance
            else:
                self._active_filters_map.pop(filter_name, None)

        if self._update_view_on_filter_change and len(self._upstream.data_map) > 0:
            self.refresh_data()

    def get_filter_values(self) -> Dict[str, Any]:
        """
        :return: raw values of the active filters
        """
        return {name: f.value for name, f in self._active_filters_map.items()}

    def _active_filters(self) -> List[BaseFilter]:
        # registration order
        return [f for name, f in self._filter_def.items() if name in self._active_filters_map]

    def test_line(self, record: Record) -> bool:
        for f in self._active_filters():
            if not f.test(record):
                return False
        return True

    # -------------------------------------------------------------------------
    # Data updates
    # -------------------------------------------------------------------------
    def update_data(self, update: Mapping[str, Any], *, mode: UpdateMode = UpdateMode.DELTA) -> None:
        """
        Apply a delta {added_lines, updated_lines, deleted_lines} (camelCase accepted)
        to the view and notify what actually changed in it.
        """
        key_of = self.compute_primary_key
        added: List[Record] = []
        updated: List[Record] = []
        deleted: List[Record] = []

        for record in _lines(update, "deleted_lines", "deletedLines"):
            if key_of(record) in self._data_map:
                deleted.append(record)
                self.remove_line_from_view(record)

        for record in _lines(update, "added_lines", "addedLines") + _lines(update, "updated_lines", "updatedLines"):
            passes = self.test_line(record)
            in_view = key_of(record) in self._data_map

            if passes and in_view:
                updated.append(record)
                self.update_line_in_view(record)
            elif passes:
                added.append(record)
                self.add_line_to_view(record)
            elif in_view:
                deleted.append(record)
                self.remove_line_from_view(record)

        self.trigger_data_updated(mode, added, updated, deleted)

    def refresh_data(self) -> None:
        """
        Recompute the view from the whole upstream data. Lines no longer upstream leave the view.
        """
        reference = self._upstream.data_map
        vanished = [r for k, r in self._data_map.items() if k not in reference]

        self.before_refresh_data()
        self.update_data(
            {"updated_lines": list(reference.values()), "deleted_lines": vanished},
            mode=UpdateMode.FULL,
        )

    def _on_upstream_updated(self, update: DataUpdate) -> None:
        if update.mode is UpdateMode.FULL:
            self.refresh_data()
        else:
            self.update_data(
                {
                    "added_lines": update.added_lines,
                    "updated_lines": update.updated_lines,
                    "deleted_lines": update.deleted_lines,
                }
            )

    # -------------------------------------------------------------------------
    # Hooks for subclasses
    # -------------------------------------------------------------------------
    def before_refresh_data(self) -> None:
        pass

    def compute_primary_key(self, record: Record) -> Optional[Key]:
        return record.get(self._primary_key)

    def add_line_to_view(self, record: Record) -> None:
        self._data_map[self.compute_primary_key(record)] = record

    def update_line_in_view(self, record: Record) -> None:
        self._data_map[self.compute_primary_key(record)] = record

    def remove_line_from_view(self, record: Record) -> None:
        self._data_map.pop(self.compute_primary_key(record), None)

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------
    def trigger_data_updated(
        self,
        mode: UpdateMode,
        added: List[Record],
        updated: List[Record],
        deleted: List[Record],
    ) -> None:
        if mode is not UpdateMode.FULL and not (added or updated or deleted):
            return

        self._data_updated.publish(
            DataUpdate(
                mode=mode,
                added_lines=list(added),
                updated_lines=list(updated),
                deleted_lines=list(deleted),
                data=dict(self._data_map),
                specific_data=dict(self._specific_data),
            )
        )

    @property
    def on_data_updated(self) -> Publisher[DataUpdate]:
        return self._data_updated

    def subscribe(self, callback: Callable[[DataUpdate], None]) -> Subscription:
        return self._data_updated.subscribe(callback)

    def close(self) -> None:
        """Stop following the upstream"""
        self._sub_manager.close_all()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------
    @property
    def data_map(self) -> Mapping[Key, Record]:
        return MappingProxyType(self._data_map)

    @property
    def data(self) -> List[Record]:
        return list(self._data_map.values())

    @property
    def primary_key(self) -> str:
        return self._primary_key

    @property
    def specific_data(self) -> Dict[str, Any]:
        return self._specific_data

    @property
    def name(self) -> str:
        return self._name

    @property
    def row_count(self) -> int:
        return len(self._data_map)


def _lines(update: Mapping[str, Any], snake: str, camel: str) -> List[Record]:
    value = update.get(snake, update.get(camel))
    if value is None:
        return []
    if isinstance(value, Mapping):
        return list(value.values())
    return list(value)
