from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union


class ContextSelectedMode(Enum):
    """
    What a DataSource does with a context when it becomes the active one.
    """

    DO_NOTHING = "do_nothing"
    RECOMPUTE_VIEW = "recompute_view"
    RESORT_VIEW = "resort_view"
    REFRESH_VIEW = "refresh_view"

    @classmethod
    def parse(cls, value: Union["ContextSelectedMode", str, None]) -> "ContextSelectedMode":
        if value is None:
            return cls.DO_NOTHING
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        # camelCase names: "recomputeView", "doNothing", ...
        if "_" not in text and not text.isupper():
            text = _CAMEL_BOUNDARY.sub("_", text)
        text = text.lower()
        return cls(_LEGACY_MODES.get(text, text))


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

_LEGACY_MODES = {
    "compute_view": "recompute_view",
    "sort_view": "resort_view",
}


def _pick(raw: Mapping[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    if snake in raw:
        return raw[snake]
    return raw.get(camel, default)


@dataclass
class DataSourceParams:
    """
    Parameters of a DataSource.

    - source_name: used in logs
    - update_view_on_filter_change: recompute a context as soon as its filter values change
    - page_size: rows per page for view-updated notifications, None/<=0 disables pagination
    - create_default_context: create a context named default_context_name at construction
    - on_context_selected: policy applied by set_active_context
    """

    source_name: str = "Default"
    update_view_on_filter_change: bool = False
    page_size: Optional[int] = None
    create_default_context: bool = True
    default_context_name: str = "main"
    on_context_selected: ContextSelectedMode = ContextSelectedMode.DO_NOTHING

    @property
    def pagination_active(self) -> bool:
        return bool(self.page_size) and self.page_size > 0

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, Any]]) -> DataSourceParams:
        raw = raw or {}
        defaults = cls()
        page_size = _pick(raw, "page_size", "pageSize", defaults.page_size)
        return cls(
            source_name=_pick(raw, "source_name", "sourceName", defaults.source_name),
            update_view_on_filter_change=bool(
                _pick(
                    raw,
                    "update_view_on_filter_change",
                    "updateViewWhenOnFilterChange",
                    defaults.update_view_on_filter_change,
                )
            ),
            page_size=int(page_size) if page_size is not None else None,
            create_default_context=bool(
                _pick(raw, "create_default_context", "createDefaultContext", defaults.create_default_context)
            ),
            default_context_name=_pick(
                raw, "default_context_name", "defaultContextName", defaults.default_context_name
            ),
            on_context_selected=ContextSelectedMode.parse(
                _pick(raw, "on_context_selected", "onContextSelectedMode", None)
            ),
        )


@dataclass
class PaginationParams:
    use: bool = False
    page_size: int = 30

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, Any]]) -> PaginationParams:
        raw = raw or {}
        return cls(
            use=bool(raw.get("use", False)),
            page_size=int(_pick(raw, "page_size", "pageSize", 30)),
        )


@dataclass
class ViewManagerParams:
    pagination: PaginationParams = field(default_factory=PaginationParams)

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, Any]]) -> ViewManagerParams:
        raw = raw or {}
        return cls(pagination=PaginationParams.from_raw(raw.get("pagination")))


@dataclass(frozen=True)
class FilterDefinition:
    """
    A filter as registered in a DataSource: name (unique per source), type (a key of the
    FilterRegistry) and type-specific params.
    """

    name: str
    type: str
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> FilterDefinition:
        return cls(
            name=raw.get("name"),
            type=raw.get("type"),
            params=dict(raw.get("params") or {}),
        )


@dataclass
class ContextDefinition:
    name: str
    filter_values: Dict[str, Any] = field(default_factory=dict)
    sort: Any = None
    is_default: bool = False

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> ContextDefinition:
        return cls(
            name=raw.get("name"),
            filter_values=dict(_pick(raw, "filter_values", "filterValues", {}) or {}),
            sort=raw.get("sort"),
            is_default=bool(_pick(raw, "is_default", "isDefault", False)),
        )


@dataclass
class DataSourceConfig:
    """
    Parsed config file describing one DataSource.
    """

    primary_key: str
    params: DataSourceParams = field(default_factory=DataSourceParams)
    filters: List[FilterDefinition] = field(default_factory=list)
    contexts: List[ContextDefinition] = field(default_factory=list)
    interned_columns: List[Dict[str, Any]] = field(default_factory=list)
    source_path: Optional[Path] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], source_path: Optional[Path] = None) -> DataSourceConfig:
        return cls(
            primary_key=_pick(raw, "primary_key", "primaryKey"),
            params=DataSourceParams.from_raw(raw.get("params")),
            filters=[FilterDefinition.from_raw(f) for f in raw.get("filters", [])],
            contexts=[ContextDefinition.from_raw(c) for c in raw.get("contexts", [])],
            interned_columns=list(_pick(raw, "interned_columns", "internedColumns", []) or []),
            source_path=source_path,
        )
