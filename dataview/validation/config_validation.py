from __future__ import annotations

from typing import Any, Mapping, Optional

from dataview.config.model import ContextSelectedMode, DataSourceConfig
from dataview.core.sorting import SortSpec
from dataview.filters import FilterRegistry
from dataview.validation.errors import ValidationError, ValidationIssue


def validate_data_source_config(
    config: DataSourceConfig,
    filter_registry: Optional[FilterRegistry] = None,
) -> None:
    """
    Check a parsed config before anything is built from it.
    Filter types are only checked when a registry is given.

    :raises ValidationError: listing every issue found
    """
    issues: list[ValidationIssue] = []
    where = str(config.source_path) if config.source_path else None

    if not isinstance(config.primary_key, str) or not config.primary_key:
        issues.append(ValidationIssue("CONFIG_PRIMARY_KEY", "Missing/invalid primary_key.", where))

    if config.params.page_size is not None and config.params.page_size < 0:
        issues.append(
            ValidationIssue("CONFIG_PAGE_SIZE", f"page_size must be >= 0, got {config.params.page_size}.", where)
        )

    # filters
    seen_filters: set[str] = set()
    for f in config.filters:
        if not f.name:
            issues.append(ValidationIssue("FILTER_NAME", "Filter without a name.", f))
            continue
        if f.name in seen_filters:
            issues.append(ValidationIssue("FILTER_DUPLICATE", f"Filter '{f.name}' defined twice.", f.name))
        seen_filters.add(f.name)

        if not f.type:
            issues.append(ValidationIssue("FILTER_TYPE", f"Filter '{f.name}' has no type.", f.name))
        elif filter_registry is not None and f.type not in filter_registry:
            issues.append(
                ValidationIssue("FILTER_TYPE", f"Filter '{f.name}' has unknown type '{f.type}'.", f.name)
            )

    # contexts
    seen_contexts: set[str] = set()
    n_default = 0
    for c in config.contexts:
        if not c.name:
            issues.append(ValidationIssue("CONTEXT_NAME", "Context without a name.", c))
            continue
        if c.name in seen_contexts:
            issues.append(ValidationIssue("CONTEXT_DUPLICATE", f"Context '{c.name}' defined twice.", c.name))
        seen_contexts.add(c.name)

        if c.is_default:
            n_default += 1

        unknown = [k for k in c.filter_values if k not in seen_filters]
        if unknown:
            issues.append(
                ValidationIssue(
                    "CONTEXT_FILTER_VALUES",
                    f"Context '{c.name}' sets values for undefined filters {unknown}.",
                    c.name,
                )
            )

        try:
            SortSpec.parse(c.sort)
        except ValueError as e:
            issues.append(ValidationIssue("CONTEXT_SORT", f"Context '{c.name}': {e}", c.name))

    if n_default > 1:
        issues.append(ValidationIssue("CONTEXT_DEFAULT", "More than one context is marked is_default.", where))

    # interned columns
    for raw in config.interned_columns:
        if not isinstance(raw, dict) or not raw.get("column"):
            issues.append(ValidationIssue("INTERNED_COLUMN", f"Invalid interned column entry {raw!r}.", where))

    if issues:
        raise ValidationError(issues)


def check_raw_params(raw_params: Mapping[str, Any], where: Optional[str] = None) -> list[ValidationIssue]:
    """
    Check the "params" block of a config file before it is parsed into DataSourceParams,
    so that values the parser cannot convert are reported as issues.

    :return: issues found, empty if the block can be parsed
    """
    issues: list[ValidationIssue] = []
    if not isinstance(raw_params, Mapping):
        return [ValidationIssue("CONFIG_PARAMS", f"params must be an object, got {raw_params!r}.", where)]

    page_size = raw_params.get("page_size", raw_params.get("pageSize"))
    if page_size is not None:
        try:
            int(page_size)
        except (TypeError, ValueError):
            issues.append(
                ValidationIssue("CONFIG_PAGE_SIZE", f"page_size must be an integer, got {page_size!r}.", where)
            )

    mode = raw_params.get("on_context_selected", raw_params.get("onContextSelectedMode"))
    try:
        ContextSelectedMode.parse(mode)
    except ValueError:
        allowed = [m.value for m in ContextSelectedMode]
        issues.append(
            ValidationIssue(
                "CONFIG_CONTEXT_SELECTED",
                f"on_context_selected must be one of {allowed}, got {mode!r}.",
                where,
            )
        )

    return issues
