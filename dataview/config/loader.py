from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Optional, Union

from dataview.config.model import DataSourceConfig
from dataview.core.canonical_store import CanonicalStore
from dataview.core.data_source import DataSource
from dataview.core.label_interning import InternedColumn, LabelInterner
from dataview.filters import FilterRegistry, create_default_filter_registry
from dataview.validation.config_validation import check_raw_params, validate_data_source_config
from dataview.validation.errors import ValidationError

logger = logging.getLogger(__name__)


def load_data_source_config(
    path: Union[str, Path],
    *,
    filter_registry: Optional[FilterRegistry] = None,
) -> DataSourceConfig:
    """
    Load and validate a DataSource config from a JSON file.

    Expected structure:

        {
            "primary_key": "id",
            "params": {"source_name": "people", "page_size": 20, ...},
            "filters": [{"name": "name", "type": "string", "params": {...}}],
            "contexts": [{"name": "main", "filter_values": {}, "sort": "-age", "is_default": true}],
            "interned_columns": [{"column": "city"}]
        }

    camelCase keys of older config files are accepted.

    :param path: the JSON file
    :param filter_registry: registry used to check filter types, the default one otherwise
    :return: the parsed DataSourceConfig
    :raises FileNotFoundError: if the file does not exist
    :raises ValidationError: if the config is inconsistent
    """
    path = Path(path)
    logger.info(
        "Loading data source config",
        extra={"config_path": str(path)},
    )

    if not path.is_file():
        raise FileNotFoundError(f"File not found at {path}")

    with path.open() as f:
        raw = json.load(f)

    issues = check_raw_params(raw.get("params") or {}, str(path))
    if issues:
        raise ValidationError(issues)

    config = DataSourceConfig.from_raw(raw, source_path=path)
    validate_data_source_config(config, filter_registry or create_default_filter_registry())

    logger.info(
        "Loaded data source config",
        extra={
            "config_path": str(path),
            "source_name": config.params.source_name,
            "n_filters": len(config.filters),
            "n_contexts": len(config.contexts),
        },
    )
    return config


def build_data_source(
    config: DataSourceConfig,
    *,
    filter_registry: Optional[FilterRegistry] = None,
    interner: Optional[LabelInterner] = None,
    logger: Optional[logging.Logger] = None,
) -> DataSource:
    """
    Instantiate a ready-to-ingest DataSource from a config.

    1. Creates the store, with an interning context named after the source if columns are interned.
    2. Registers every filter definition.
    3. Adds the configured contexts (or the default one when none is configured).

    :param interner: holder of the interning context; a fresh one is created if needed
    :raises ConfigurationError: on an unknown filter type or invalid filter params
    """
    log = logger or logging.getLogger(__name__)

    params = config.params
    if config.contexts:
        params = dataclasses.replace(params, create_default_context=False)

    interning = None
    if config.interned_columns:
        interner = interner or LabelInterner(logger=log)
        interning = interner.init_context(
            params.source_name,
            [InternedColumn.from_raw(c) for c in config.interned_columns],
        )

    store = CanonicalStore(config.primary_key, interning=interning, logger=log)
    source = DataSource(
        config.primary_key,
        params,
        filter_registry=filter_registry,
        store=store,
        logger=log,
    )

    for f in config.filters:
        source.add_filter_definition(f.name, f.type, f.params)

    for c in config.contexts:
        source.add_context(
            c.name,
            filter_values=c.filter_values,
            sort_spec=c.sort,
            is_default=c.is_default,
        )

    log.debug(
        "Built data source",
        extra={
            "source_name": source.source_name,
            "filters": [f.name for f in source.filter_definitions],
            "contexts": source.context_names(),
        },
    )
    return source
