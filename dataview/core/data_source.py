from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from dataview.config.model import ContextSelectedMode, DataSourceParams, FilterDefinition
from dataview.core.canonical_store import CanonicalStore, IngestResult
from dataview.core.context import Context, ContextState
from dataview.core.notifications import Publisher, ReplayPublisher, Subscription, SubscriptionManager
from dataview.core.payloads import ContextUpdate, DeltaBatch, Key, Pagination, Record, ViewUpdate
from dataview.core.sorting import SortSpec, sort_records
from dataview.exceptions import ConfigurationError, InvariantViolation
from dataview.filters import BaseFilter, FilterRegistry, create_default_filter_registry, normalise_params


class DataSource:
    """
    Orchestrates N contexts over one {@link CanonicalStore}.

    Includes:
    - filter definitions shared by all contexts (built through an injected {@link FilterRegistry})
    - context management (add / remove / select, one active context at a time)
    - full recompute of a context view, and incremental propagation of delta batches
    - sorting and pagination of the active view
    - two notification streams:
        * view-updated (replays the last value): paginated, sorted view of the active context
        * context-updated (push only): what changed in one context's view

    Every public mutating call runs to completion and notifies synchronously before returning.
    Subscribers must not mutate the DataSource from their callbacks.
    """

    def __init__(
        self,
        primary_key: str,
        params: Union[DataSourceParams, Mapping[str, Any], None] = None,
        *,
        filter_registry: Optional[FilterRegistry] = None,
        store: Optional[CanonicalStore] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if isinstance(params, DataSourceParams):
            self._params = params
        else:
            self._params = DataSourceParams.from_raw(params)

        self._logger = logger or logging.getLogger(__name__)
        self._registry = filter_registry or create_default_filter_registry()

        if store is None:
            store = CanonicalStore(primary_key, logger=self._logger)
        elif store.primary_key != primary_key:
            raise ConfigurationError(
                f"Store primary key '{store.primary_key}' differs from DataSource primary key '{primary_key}'"
            )
        self._store = store

        # name -> definition / filter instance, in registration order
        self._filter_defs: Dict[str, FilterDefinition] = {}
        self._filters: Dict[str, BaseFilter] = {}

        self._contexts: Dict[str, Context] = {}
        self._active_context: Optional[Context] = None

        self._view_updated: ReplayPublisher[ViewUpdate] = ReplayPublisher("view_updated")
        self._context_updated: Publisher[ContextUpdate] = Publisher("context_updated")
        self._sub_manager = SubscriptionManager(self)

        if self._params.create_default_context:
            self.add_context(self._params.default_context_name)

    # -------------------------------------------------------------------------
    # Context management
    # -------------------------------------------------------------------------
    def add_context(
        self,
        name: str,
        *,
        filter_values: Optional[Mapping[str, Any]] = None,
        sort_spec: Any = None,
        is_default: bool = False,
    ) -> bool:
        """
        Create a context. The first one created, or one created with is_default, becomes active.
        If the store already holds data, the new context's view is computed right away.

        :return: False (and nothing changed) if the name is already used
        """
        if name in self._contexts:
            self._logger.error(
                "Cannot add twice context [%s] to DataSource [%s]", name, self.source_name
            )
            return False

        context = Context(
            name=name,
            filter_values=dict(filter_values or {}),
            sort_spec=SortSpec.parse(sort_spec),
            is_default=is_default,
        )
        self._contexts[name] = context

        if self._active_context is None or is_default:
            self._switch_active(context)

        if len(self._store):
            self.compute_context_view(context)
        return True

    def remove_context(self, name: str) -> bool:
        """
        Delete a context. If it was the active one, the default context (or the first remaining)
        becomes active, with the on-selection policy applied, and view-updated subscribers get
        its view. Removing the last context forgets the replayed view.
        """
        context = self._contexts.pop(name, None)
        if context is None:
            self._logger.error(
                "Cannot remove unknown context [%s] from DataSource [%s]", name, self.source_name
            )
            return False

        context.is_active = False
        if context is self._active_context:
            self._active_context = None
            if self._contexts:
                replacement = next(
                    (c for c in self._contexts.values() if c.is_default),
                    next(iter(self._contexts.values())),
                )
                self.set_active_context(replacement.name)
                if self._params.on_context_selected is ContextSelectedMode.DO_NOTHING:
                    self.trigger_view_updated_notif()
            else:
                self._view_updated.clear()
        return True

    def set_active_context(self, name: str) -> bool:
        """
        Select the active context, then apply the on-selection policy:
        - DO_NOTHING: switch only
        - RECOMPUTE_VIEW: full recompute of the newly active context
        - RESORT_VIEW: sort its view, then notify
        - REFRESH_VIEW: notify with its current view
        """
        context = self._contexts.get(name)
        if context is None:
            self._logger.error("Cannot select [%s] in DataSource [%s]", name, self.source_name)
            return False

        started = time.perf_counter()
        self._switch_active(context)

        mode = self._params.on_context_selected
        if mode is ContextSelectedMode.RECOMPUTE_VIEW:
            self.compute_context_view(context)
        elif mode in (ContextSelectedMode.RESORT_VIEW, ContextSelectedMode.REFRESH_VIEW):
            if mode is ContextSelectedMode.RESORT_VIEW:
                self._sort_view(context)
            context.update_page_count(self._params.page_size, reset=True)
            self.trigger_view_updated_notif()
            self.trigger_context_updated(context, None)

        self._log_timing("setActiveContext", started, context=name, mode=mode.value)
        return True

    def _switch_active(self, context: Context) -> None:
        if self._active_context is not None:
            self._active_context.is_active = False
        self._active_context = context
        context.is_active = True

    def get_context(self, name: str) -> Optional[Context]:
        return self._contexts.get(name)

    # -------------------------------------------------------------------------
    # Filter management
    # -------------------------------------------------------------------------
    def add_filter_definition(
        self,
        name: str,
        filter_type: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Make a filter available to every context of this DataSource.

        :param name: unique filter name, also the key in context filter values
        :param filter_type: a type registered in the FilterRegistry ("string", "int", ...)
        :param params: filter params; column_key defaults to name
        :return: False if a filter with the same name is already registered

        Raises:
            ConfigurationError: if filter_type is unknown or params are invalid for it
        """
        if name in self._filter_defs:
            self._logger.error(
                "Cannot add twice filter [%s] to DataSource [%s]", name, self.source_name
            )
            return False

        if self._registry.get(filter_type) is None:
            self._logger.critical(
                "Can't find filterType [%s]",
                filter_type,
                extra={"filter_name": name, "known_types": self._registry.types()},
            )
            raise ConfigurationError(f"Unknown filter type '{filter_type}' for filter '{name}'")

        kwargs = normalise_params(params)
        kwargs.setdefault("column_key", name)

        try:
            instance = self._registry.create(filter_type, **kwargs)
        except ConfigurationError:
            self._logger.error("Invalid configuration for filter [%s]", name, exc_info=True)
            raise
        except (TypeError, ValueError) as e:
            self._logger.error("Invalid params for filter [%s]: %s", name, e)
            raise ConfigurationError(f"Invalid params for filter '{name}': {e}") from e

        self._filter_defs[name] = FilterDefinition(name=name, type=filter_type, params=dict(params or {}))
        self._filters[name] = instance
        return True

    def add_filter(
        self,
        name: str,
        filter_type: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> "DataSource":
        """Chaining flavour of {@link add_filter_definition}"""
        self.add_filter_definition(name, filter_type, params)
        return self

    def update_context_filter_values(
        self,
        context_name: Optional[str],
        values: Mapping[str, Any],
    ) -> bool:
        """
        Merge new filter values into a context (the active one when context_name is None).

        With params.update_view_on_filter_change the view is fully recomputed; otherwise the
        values stay staged until {@link refresh_context} / {@link refresh_all}.
        """
        if context_name is None:
            context = self._active_context
            if context is None:
                self._logger.error(
                    "No active context found in DataSource [%s] for filter update", self.source_name
                )
                return False
        else:
            context = self._contexts.get(context_name)
            if context is None:
                self._logger.error(
                    "Cannot update filters of unknown context [%s] in DataSource [%s]",
                    context_name,
                    self.source_name,
                )
                return False

        unknown = [k for k in values if k not in self._filters]
        if unknown:
            self._logger.warning(
                "Filter values given for unregistered filters",
                extra={"source": self.source_name, "context": context.name, "filters": unknown},
            )

        context.filter_values.update(values)

        if self._params.update_view_on_filter_change:
            self.compute_context_view(context)
        return True

    def compute_active_filters(self, context: Context) -> List[BaseFilter]:
        """
        Filters that take part in testing for this context, in registration order.
        Each one is a copy activated with the context's value.
        """
        active: List[BaseFilter] = []
        values = context.filter_values
        for name, instance in self._filters.items():
            bound = instance.bind(values.get(name))
            if bound is not None:
                active.append(bound)
        return active

    @staticmethod
    def test_line(record: Record, active_filters: Sequence[BaseFilter]) -> bool:
        """
        A record passes if every active filter accepts it; stops at the first failure.
        """
        for f in active_filters:
            if not f.test(record):
                return False
        return True

    # -------------------------------------------------------------------------
    # Sorting / pagination
    # -------------------------------------------------------------------------
    def sort(self, records: List[Record], context: Context) -> List[Record]:
        """
        Order a context's records. Stable sort on context.sort_spec by default;
        subclasses may override.
        """
        return sort_records(records, context.sort_spec)

    def _sort_view(self, context: Context) -> None:
        if context.sort_spec.is_empty:
            return
        key_of = self._store.compute_primary_key
        ordered = self.sort(context.records(), context)
        context.view = {key_of(r): r for r in ordered}

    def _restore_store_order(self, context: Context) -> None:
        view = context.view
        context.view = {key: view[key] for key in self._store.data_map if key in view}

    def set_context_sort(self, context_name: Optional[str], sort_spec: Any) -> bool:
        """
        Change the sort of a context (the active one when context_name is None) and re-sort its view.
        """
        context = self._active_context if context_name is None else self._contexts.get(context_name)
        if context is None:
            self._logger.error(
                "Cannot sort unknown context [%s] in DataSource [%s]", context_name, self.source_name
            )
            return False

        context.sort_spec = SortSpec.parse(sort_spec)
        self._sort_view(context)
        if context is self._active_context:
            self.trigger_view_updated_notif()
        return True

    def select_page(self, page: int) -> bool:
        """
        Select a page of the active view. 1 <= page <= page_count.
        """
        if not self._params.pagination_active:
            self._logger.error(
                "Cannot select page when pagination not activated in DataSource [%s]", self.source_name
            )
            return False

        context = self._active_context
        if context is None:
            self._logger.error("No active context in DataSource [%s] to select a page", self.source_name)
            return False

        if not isinstance(page, int) or page < 1 or page > context.page_count:
            self._logger.error(
                "Incorrect page index [%s] in DataSource [%s]", page, self.source_name,
                extra={"page_count": context.page_count},
            )
            return False

        context.current_page = page
        self.trigger_view_updated_notif()
        return True

    # -------------------------------------------------------------------------
    # Full recompute
    # -------------------------------------------------------------------------
    def compute_context_view(self, context: Context) -> None:
        """
        Rebuild a context view from scratch: filter every store record, sort, and notify.
        The whole view is reported as added_lines.
        """
        context.state = ContextState.RECOMPUTING
        context.view.clear()

        is_active = context is self._active_context
        if is_active:
            self.before_compute_view(context)

        active_filters = self.compute_active_filters(context)
        for record in self._store:
            if self.test_line(record, active_filters):
                self.add_line_to_view(context, record)

        self._sort_view(context)

        context.update_page_count(self._params.page_size, reset=True)
        context.state = ContextState.IDLE

        if is_active:
            self.trigger_view_updated_notif()

        self.trigger_context_updated(context, DeltaBatch(added_lines=dict(context.view)))

    def recompute_all_contexts(self) -> None:
        for context in list(self._contexts.values()):
            self.before_recompute_context(context)
            self.compute_context_view(context)

    def refresh_context(self, name: Optional[str] = None) -> bool:
        """
        Apply staged filter values: full recompute of a context (the active one when name is None).
        """
        context = self._active_context if name is None else self._contexts.get(name)
        if context is None:
            self._logger.error(
                "Cannot refresh unknown context [%s] in DataSource [%s]", name, self.source_name
            )
            return False
        self.compute_context_view(context)
        return True

    def refresh_all(self) -> None:
        self.recompute_all_contexts()

    # -------------------------------------------------------------------------
    # Ingest
    # -------------------------------------------------------------------------
    def ingest_full_replace(self, records: Iterable[Record]) -> IngestResult:
        """
        Replace the canonical data and recompute every context from scratch.
        """
        started = time.perf_counter()
        result = self._store.replace_all(records)
        self.recompute_all_contexts()
        self._log_timing("ingestFullReplace", started, n_records=len(self._store))
        return result

    def ingest_delta(
        self,
        added_or_updated: Iterable[Record] = (),
        removed: Iterable[Key] = (),
    ) -> IngestResult:
        """
        Apply additions/updates then removals to the store, and propagate only those
        changes to every context.
        """
        started = time.perf_counter()
        result = self._store.apply_additions(added_or_updated)
        removal = self._store.apply_removals(removed)
        result.removed = removal.removed

        if result.changed:
            self.compute_delta_for_contexts(result.accepted, result.removed)

        self._log_timing(
            "ingestDelta",
            started,
            n_added=len(result.added),
            n_replaced=len(result.replaced),
            n_removed=len(result.removed),
            n_rejected=len(result.rejected),
        )
        return result

    def apply_update(self, update: Mapping[str, Any]) -> IngestResult:
        """
        Wire-format delta: {"added_lines": [...], "updated_lines": [...], "deleted_lines": [...]}
        (camelCase keys accepted). Deleted lines are records; their primary keys are removed.
        """

        def lines(snake: str, camel: str) -> List[Record]:
            value = update.get(snake, update.get(camel))
            if value is None:
                return []
            if isinstance(value, Mapping):
                return list(value.values())
            return list(value)

        added = lines("added_lines", "addedLines") + lines("updated_lines", "updatedLines")
        key_of = self._store.compute_primary_key
        removed_keys = [
            key for key in (key_of(r) for r in lines("deleted_lines", "deletedLines")) if key is not None
        ]
        return self.ingest_delta(added, removed_keys)

    def compute_delta_for_contexts(
        self,
        changed: Sequence[Record],
        removed: Sequence[Record] = (),
    ) -> None:
        """
        Incremental propagation. For each context and each changed record:
        stays-out (no-op), enters (add), leaves (remove) or updates (replace in place).
        Removed records leave every view holding them.
        """
        key_of = self._store.compute_primary_key
        view_updated = False

        for context in list(self._contexts.values()):
            context.state = ContextState.RECOMPUTING
            delta = DeltaBatch()
            entered = False
            active_filters = self.compute_active_filters(context)

            for record in changed:
                key = key_of(record)
                passes = self.test_line(record, active_filters)
                in_view = key in context.view

                if passes and in_view:
                    if self.process_line_updated(context, record):
                        delta.record_updated(key, record)
                elif passes:
                    self.add_line_to_view(context, record)
                    delta.record_entered(key, record)
                    entered = True
                elif in_view:
                    self.remove_line_from_view(context, key)
                    delta.record_left(key, record)

            for record in removed:
                key = key_of(record)
                if key in context.view:
                    self.remove_line_from_view(context, key)
                    delta.record_left(key, record)

            context.state = ContextState.IDLE

            if not delta.is_empty:
                # same order as a full recompute: store order, then stable sort
                if entered:
                    self._restore_store_order(context)
                self._sort_view(context)
                context.update_page_count(self._params.page_size)
                if context is self._active_context:
                    view_updated = True
                self.trigger_context_updated(context, delta)

        if view_updated:
            self.trigger_view_updated_notif()

    # -------------------------------------------------------------------------
    # Hooks for subclasses
    # -------------------------------------------------------------------------
    def before_compute_view(self, context: Context) -> None:
        pass

    def before_recompute_context(self, context: Context) -> None:
        pass

    def add_line_to_view(self, context: Context, record: Record) -> None:
        context.view[self._store.compute_primary_key(record)] = record

    def process_line_updated(self, context: Context, record: Record) -> bool:
        """
        Replace a record already in the view (keeps its position).
        :return: True if the update must be reported
        """
        context.view[self._store.compute_primary_key(record)] = record
        return True

    def remove_line_from_view(self, context: Context, key: Key) -> None:
        context.view.pop(key, None)

    def make_extra_data_for_notif(self) -> Any:
        """Extra payload for view-updated notifications; None by default"""
        return None

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------
    def _require_active_context(self) -> Context:
        if self._active_context is None:
            raise InvariantViolation(f"No active context in DataSource [{self.source_name}]")
        return self._active_context

    def trigger_view_updated_notif(self) -> None:
        """
        Send the paginated, sorted view of the active context to view-updated subscribers.
        """
        context = self._require_active_context()
        page_size = self._params.page_size if self._params.pagination_active else None

        if context.page_count < 1 or context.current_page > context.page_count:
            context.update_page_count(page_size)

        self._view_updated.publish(
            ViewUpdate(
                view=context.page(page_size),
                filter_values=dict(context.filter_values),
                pagination=Pagination(
                    is_active=self._params.pagination_active,
                    current_page=context.current_page,
                    page_count=context.page_count,
                    page_size=page_size,
                ),
                extra=self.make_extra_data_for_notif(),
                context_name=context.name,
                total_count=len(context.view),
            )
        )

    def trigger_context_updated(self, context: Context, delta: Optional[DeltaBatch]) -> None:
        self._context_updated.publish(
            ContextUpdate(
                context_name=context.name,
                context=context.to_dict(),
                delta=delta,
                view=dict(context.view),
            )
        )

    def on_view_updated(self, callback: Callable[[ViewUpdate], None]) -> Subscription:
        """Subscribe to view updates; the last one is replayed immediately"""
        return self._view_updated.subscribe(callback)

    def on_context_updated(self, callback: Callable[[ContextUpdate], None]) -> Subscription:
        """Subscribe to context updates (push only)"""
        return self._context_updated.subscribe(callback)

    @property
    def view_updated(self) -> ReplayPublisher[ViewUpdate]:
        return self._view_updated

    @property
    def context_updated(self) -> Publisher[ContextUpdate]:
        return self._context_updated

    @property
    def sub_manager(self) -> SubscriptionManager:
        """Subscriptions this source holds on other publishers, closed by {@link close}"""
        return self._sub_manager

    def close(self) -> None:
        self._sub_manager.close_all()

    # -------------------------------------------------------------------------
    # Logging helper
    # -------------------------------------------------------------------------
    def _log_timing(self, operation: str, started: float, **fields: Any) -> None:
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                "%s done",
                operation,
                extra={
                    "source": self.source_name,
                    "elapsed_ms": round((time.perf_counter() - started) * 1000, 3),
                    **fields,
                },
            )

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------
    @property
    def source_name(self) -> str:
        return self._params.source_name

    @property
    def params(self) -> DataSourceParams:
        return self._params

    @property
    def primary_key(self) -> str:
        return self._store.primary_key

    @property
    def store(self) -> CanonicalStore:
        return self._store

    @property
    def filter_registry(self) -> FilterRegistry:
        return self._registry

    @property
    def filter_definitions(self) -> List[FilterDefinition]:
        return list(self._filter_defs.values())

    @property
    def active_context(self) -> Optional[Context]:
        return self._active_context

    @property
    def contexts(self) -> List[Context]:
        return list(self._contexts.values())

    def context_names(self) -> List[str]:
        return list(self._contexts)
