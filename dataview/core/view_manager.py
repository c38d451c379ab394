from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, Union

from dataview.config.model import ViewManagerParams
from dataview.core.context import page_count_for
from dataview.core.notifications import ReplayPublisher, Subscription
from dataview.core.payloads import Pagination, Record, ViewManagerUpdate
from dataview.core.sorting import SortSpec, sort_records


class ViewManager:
    """
    Sort + pagination over records that were already filtered upstream
    (server side, or by a parent DataSource).

    Each mutating call emits exactly one view-updated notification carrying the
    total row count, the visible slice and the pagination state.

    {@link sort} is an extension point and does nothing here: use
    {@link ColumnSortViewManager} or override it.
    """

    def __init__(
        self,
        params: Union[ViewManagerParams, Mapping[str, Any], None] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if isinstance(params, ViewManagerParams):
            self._params = params
        else:
            self._params = ViewManagerParams.from_raw(params)
        self._logger = logger or logging.getLogger(__name__)

        self._data: List[Record] = []
        self._view: List[Record] = []

        self._current_page = 1
        self._page_count = 1

        self._sort_model = SortSpec()
        self._context: Any = None

        self._view_updated: ReplayPublisher[ViewManagerUpdate] = ReplayPublisher("view_manager.view_updated")

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------
    def update_data_array(self, records: Iterable[Record]) -> None:
        """
        Replace the working set (the given sequence is copied, never reordered) and refresh the view.
        """
        self._data = list(records)
        self.update_sort_only()

    def update_sort_model(self, sort_model: Any) -> None:
        """
        Change the sort model. None is ignored; a model naming a column triggers a resort.
        """
        if sort_model is None:
            return

        self._sort_model = SortSpec.parse(sort_model)
        if not self._sort_model.is_empty:
            self.update_sort_only()

    def update_sort_only(self) -> None:
        """
        Sort the working set, recompute pagination and notify.
        """
        self.sort()

        pag = self._params.pagination
        if pag.use:
            self._page_count = page_count_for(len(self._data), pag.page_size)
            if self._current_page > self._page_count:
                self._current_page = 1
        else:
            self._current_page = 1
            self._page_count = 1

        self.compute_view_for_page()
        self.trigger_view_updated()

    def select_page(self, page_index: int) -> bool:
        """
        Go to a page (1-based). Reported and ignored when pagination is off or the index is out of range.
        """
        if not self._params.pagination.use:
            self._logger.error("Cannot select page when pagination not activated in ViewManager")
            return False

        if not isinstance(page_index, int) or page_index < 1 or page_index > self._page_count:
            self._logger.error(
                "Incorrect page index [%s] in ViewManager", page_index,
                extra={"page_count": self._page_count},
            )
            return False

        self._current_page = page_index
        self.compute_view_for_page()
        self.trigger_view_updated()
        return True

    def compute_view_for_page(self) -> None:
        pag = self._params.pagination
        if pag.use:
            first = (self._current_page - 1) * pag.page_size
            self._view = self._data[first:first + pag.page_size]
        else:
            self._view = list(self._data)

    def sort(self) -> None:
        """
        Sort self._data in place. No-op by default.
        """

    def get_rows(self, start_row: int, end_row: int) -> Tuple[List[Record], int]:
        """
        Row window for server-side driven grids: rows [start_row, end_row) of the
        sorted working set, plus the total row count.
        """
        start = max(0, start_row)
        end = min(end_row, len(self._data))
        return self._data[start:end], len(self._data)

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------
    def trigger_view_updated(self) -> None:
        pag = self._params.pagination
        self._view_updated.publish(
            ViewManagerUpdate(
                total_count=len(self._data),
                view=list(self._view),
                pagination=Pagination(
                    is_active=pag.use,
                    current_page=self._current_page,
                    page_count=self._page_count,
                    page_size=pag.page_size if pag.use else None,
                ),
                context=self._context,
            )
        )

    def on_view_updated(self, callback: Callable[[ViewManagerUpdate], None]) -> Subscription:
        return self._view_updated.subscribe(callback)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------
    @property
    def view(self) -> List[Record]:
        return list(self._view)

    @property
    def data(self) -> List[Record]:
        return list(self._data)

    @property
    def row_count(self) -> int:
        return len(self._data)

    @property
    def view_row_count(self) -> int:
        return len(self._view)

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def sort_model(self) -> SortSpec:
        return self._sort_model

    @sort_model.setter
    def sort_model(self, sort_model: Any) -> None:
        """Set without resorting"""
        self._sort_model = SortSpec.parse(sort_model)

    @property
    def context(self) -> Any:
        return self._context

    @context.setter
    def context(self, context: Any) -> None:
        self._context = context


class ColumnSortViewManager(ViewManager):
    """
    ViewManager sorting its records on the column named by the sort model.
    """

    def sort(self) -> None:
        self._data = sort_records(self._data, self._sort_model)
