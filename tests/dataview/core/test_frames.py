from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from dataview.core.data_source import DataSource
from dataview.core.frames import records_from_frame, records_to_frame


def _make_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "name": ["Ann", "Bob", None],
            "age": [30.0, np.nan, 12.0],
            "count": np.array([1, 2, 3], dtype=np.int64),
        },
        index=pd.Index(["c1", "c2", "c3"], name="cell"),
    )


def test_records_from_frame_converts_values():
    records = records_from_frame(_make_frame())

    assert records[0] == {"name": "Ann", "age": 30.0, "count": 1}
    assert records[1]["age"] is None
    assert records[2]["name"] is None
    assert type(records[0]["count"]) is int


def test_records_from_frame_lifts_index():
    records = records_from_frame(_make_frame(), index_as="id")
    assert [r["id"] for r in records] == ["c1", "c2", "c3"]

    with pytest.raises(ValueError):
        records_from_frame(_make_frame(), index_as="name")


def test_records_to_frame_indexes_by_primary_key():
    records = [{"id": 1, "name": "Ann"}, {"id": 2, "name": "Bob", "age": 3}]

    df = records_to_frame(records, primary_key="id")

    assert list(df.index) == [1, 2]
    assert df.loc[2, "age"] == 3
    assert pd.isna(df.loc[1, "age"])


def test_records_to_frame_selects_columns():
    records = [{"id": 1, "name": "Ann", "age": 3}]
    df = records_to_frame(records, primary_key="id", columns=["age", "missing"])

    assert list(df.columns) == ["age", "missing"]
    assert df.index.name == "id"


def test_records_to_frame_empty():
    df = records_to_frame([], primary_key="id")
    assert len(df) == 0
    assert df.index.name == "id"

    with pytest.raises(KeyError):
        records_to_frame([{"name": "x"}], primary_key="id")


def test_frame_roundtrip_through_data_source():
    source = DataSource("id")
    source.add_filter_definition("name", "string")
    source.update_context_filter_values(None, {"name": "bob"})

    source.ingest_full_replace(records_from_frame(_make_frame(), index_as="id"))
    df = records_to_frame(source.active_context.records(), primary_key="id")

    assert list(df.index) == ["c2"]
