from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from dataview.core.payloads import Record

logger = logging.getLogger(__name__)


def _to_python(value: Any) -> Any:
    """
    Make a cell value safe to store in a record: NaN/NaT become None, numpy scalars become Python scalars.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple, dict, set, np.ndarray)):
        return value
    if pd.isna(value):
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


def records_from_frame(df: pd.DataFrame, *, index_as: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Convert a DataFrame into records ready for ingestion.

    :param df: one row per record
    :param index_as: if given, the index values are stored under this column name
                     (typically the primary key when it lives in the index)
    :return: list of dicts, one per row, in row order
    """
    if index_as is not None and index_as in df.columns:
        raise ValueError(f"Column '{index_as}' already exists in frame")

    columns = [str(c) for c in df.columns]
    records: List[Dict[str, Any]] = []
    for idx, row in zip(df.index, df.itertuples(index=False, name=None)):
        record = {col: _to_python(v) for col, v in zip(columns, row)}
        if index_as is not None:
            record[index_as] = _to_python(idx)
        records.append(record)

    logger.debug(
        "Converted frame to records",
        extra={"n_rows": len(records), "n_columns": len(columns)},
    )
    return records


def records_to_frame(
    records: Iterable[Record],
    *,
    primary_key: Optional[str] = None,
    columns: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Build a DataFrame from records (e.g. a context view or a DataUpdate payload).

    Accepts a sequence of records or a key -> record mapping's values.
    If primary_key is given it becomes the index. If columns is given only those
    columns are kept, in that order; missing ones are filled with None.
    """
    rows = list(records)
    df = pd.DataFrame.from_records(rows)

    if columns is not None:
        keep = list(columns)
        if primary_key is not None and primary_key not in keep and primary_key in df.columns:
            keep.insert(0, primary_key)
        df = df.reindex(columns=keep)

    if primary_key is not None:
        if primary_key not in df.columns:
            if rows:
                raise KeyError(f"Primary key column '{primary_key}' not in records")
            df[primary_key] = pd.Series(dtype=object)
        df = df.set_index(primary_key)

    return df
