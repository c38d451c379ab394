from __future__ import annotations

import logging

import pytest

from dataview.config.model import ContextSelectedMode, DataSourceParams
from dataview.core.canonical_store import CanonicalStore
from dataview.core.data_source import DataSource
from dataview.exceptions import ConfigurationError

PEOPLE = [
    {"id": 1, "name": "Ann", "age": 30},
    {"id": 2, "name": "Anna", "age": 25},
    {"id": 3, "name": "Bob", "age": 40},
    {"id": 4, "name": "Joann", "age": 0},
    {"id": 5, "name": "ann", "age": 35},
]


def _make_source(**params) -> DataSource:
    source = DataSource("id", params)
    source.add_filter_definition("name", "string", {"comparison_level": "EQUALS"})
    source.add_filter_definition("age", "int")
    return source


def _keys(records) -> list:
    return [r["id"] for r in records]


def _filtered_store(source: DataSource, context_name: str) -> set:
    context = source.get_context(context_name)
    filters = source.compute_active_filters(context)
    return {r["id"] for r in source.store if DataSource.test_line(r, filters)}


# -----------------------------------------------------------------------------
# Contexts
# -----------------------------------------------------------------------------
def test_default_context_is_created_and_active():
    source = DataSource("id")

    assert source.context_names() == ["main"]
    assert source.active_context.name == "main"
    assert source.active_context.is_active


def test_default_context_can_be_disabled():
    source = DataSource("id", {"createDefaultContext": False})
    assert source.contexts == []
    assert source.active_context is None


def test_add_context_duplicate_is_reported(caplog):
    source = _make_source()
    with caplog.at_level(logging.ERROR):
        assert source.add_context("main") is False
    assert "twice" in caplog.text
    assert source.context_names() == ["main"]


def test_add_default_context_becomes_active():
    source = _make_source()
    source.add_context("alt", is_default=True)

    assert source.active_context.name == "alt"
    assert not source.get_context("main").is_active


def test_new_context_is_computed_when_data_exists():
    source = _make_source()
    source.ingest_full_replace(PEOPLE)

    source.add_context("bobs", filter_values={"name": "bob"})

    assert _keys(source.get_context("bobs").records()) == [3]


def test_remove_active_context_falls_back_to_default():
    source = _make_source()
    source.add_context("alt")
    source.add_context("fallback", is_default=True)
    source.set_active_context("alt")

    assert source.remove_context("alt")
    assert source.active_context.name == "fallback"
    assert source.remove_context("nope") is False


def test_remove_last_context_leaves_no_active():
    source = _make_source()
    source.remove_context("main")
    assert source.active_context is None


def test_remove_active_context_replays_replacement_view():
    source = _make_source()
    source.add_context("alt", filter_values={"name": "bob"}, is_default=True)
    source.set_active_context("main")
    source.ingest_full_replace(PEOPLE)

    source.remove_context("main")
    late = []
    source.on_view_updated(late.append)

    assert source.active_context.name == "alt"
    assert len(late) == 1
    assert late[0].context_name == "alt"
    assert _keys(late[0].view) == [3]


def test_remove_last_context_forgets_replayed_view():
    source = _make_source()
    source.ingest_full_replace(PEOPLE)

    source.remove_context("main")
    late = []
    source.on_view_updated(late.append)

    assert late == []


def test_set_active_unknown_context_is_reported(caplog):
    source = _make_source()
    with caplog.at_level(logging.ERROR):
        assert source.set_active_context("nope") is False
    assert source.active_context.name == "main"


# -----------------------------------------------------------------------------
# Filters
# -----------------------------------------------------------------------------
def test_unknown_filter_type_is_fatal():
    source = _make_source()
    with pytest.raises(ConfigurationError):
        source.add_filter_definition("x", "fuzzy")


def test_invalid_filter_params_are_fatal():
    source = _make_source()
    with pytest.raises(ConfigurationError):
        source.add_filter_definition("x", "string", {"comparisonLevel": "SOUNDEX"})
    with pytest.raises(ConfigurationError):
        source.add_filter_definition("y", "int", {"unknown_param": 1})


def test_duplicate_filter_is_reported(caplog):
    source = _make_source()
    with caplog.at_level(logging.ERROR):
        assert source.add_filter_definition("name", "int") is False
    assert [f.type for f in source.filter_definitions] == ["string", "int"]


def test_filter_column_key_defaults_to_name_and_can_be_overridden():
    source = DataSource("id")
    source.add_filter("who", "string", {"columnKey": "name"}).add_filter("age", "int")
    source.update_context_filter_values(None, {"who": "bob"})
    source.ingest_full_replace(PEOPLE)

    assert _keys(source.active_context.records()) == [3]


def test_unknown_filter_values_are_warned(caplog):
    source = _make_source()
    with caplog.at_level(logging.WARNING):
        assert source.update_context_filter_values(None, {"nope": 1})
    assert "unregistered" in caplog.text


def test_filter_values_are_staged_until_refresh():
    source = _make_source()
    source.ingest_full_replace(PEOPLE)

    source.update_context_filter_values("main", {"name": "bob"})
    assert len(source.active_context.view) == 5

    assert source.refresh_context("main")
    assert _keys(source.active_context.records()) == [3]


def test_filter_values_recompute_immediately_when_configured():
    source = _make_source(update_view_on_filter_change=True)
    source.ingest_full_replace(PEOPLE)

    source.update_context_filter_values(None, {"name": "bob"})
    assert _keys(source.active_context.records()) == [3]


# -----------------------------------------------------------------------------
# Full recompute properties
# -----------------------------------------------------------------------------
def test_view_equals_filtered_store_after_recompute():
    source = _make_source()
    source.add_context("alt", filter_values={"age": 25})
    source.update_context_filter_values("main", {"name": "ann"})
    source.ingest_full_replace(PEOPLE)

    for name in source.context_names():
        assert set(source.get_context(name).view) == _filtered_store(source, name)


def test_recompute_is_idempotent():
    source = _make_source()
    source.update_context_filter_values("main", {"name": "ann"})
    source.ingest_full_replace(PEOPLE)
    before = list(source.active_context.view.items())

    source.refresh_all()

    assert list(source.active_context.view.items()) == before


def test_view_holds_unique_primary_keys():
    source = _make_source()
    source.ingest_full_replace(PEOPLE + [{"id": 1, "name": "Ann again", "age": 1}])
    source.ingest_delta([{"id": 2, "name": "Anna", "age": 26}])

    keys = _keys(source.active_context.records())
    assert len(keys) == len(set(keys)) == 5


def test_records_without_primary_key_are_skipped():
    source = _make_source()
    result = source.ingest_full_replace(PEOPLE + [{"name": "ghost"}])

    assert len(result.rejected) == 1
    assert len(source.active_context.view) == 5


# -----------------------------------------------------------------------------
# Scenarios
# -----------------------------------------------------------------------------
def test_equals_filter_keeps_exact_matches_only():
    source = _make_source()
    source.update_context_filter_values(None, {"name": "ann"})
    source.ingest_full_replace(PEOPLE)

    assert _keys(source.active_context.records()) == [1, 5]


def test_non_matching_delta_emits_nothing():
    source = _make_source()
    source.update_context_filter_values(None, {"name": "ann"})
    source.ingest_full_replace(PEOPLE)

    context_updates = []
    views = []
    source.on_context_updated(context_updates.append)
    source.on_view_updated(views.append)
    views.clear()

    source.ingest_delta([{"id": 6, "name": "Anna", "age": 20}])

    assert context_updates == []
    assert views == []
    assert _keys(source.active_context.records()) == [1, 5]


def test_int_filter_zero_is_ignored():
    source = _make_source()
    source.update_context_filter_values(None, {"age": 0})
    source.ingest_full_replace(PEOPLE)

    assert len(source.active_context.view) == 5


def test_only_affected_context_is_notified():
    source = _make_source()
    source.update_context_filter_values("main", {"name": "bob"})
    source.add_context("alt", filter_values={"name": "ann"})
    source.ingest_full_replace(PEOPLE)

    context_updates = []
    source.on_context_updated(context_updates.append)
    source.ingest_delta([{"id": 7, "name": "Ann", "age": 50}])

    assert [u.context_name for u in context_updates] == ["alt"]
    delta = context_updates[0].delta
    assert list(delta.added_lines) == [7]
    assert delta.updated_lines == {} and delta.deleted_lines == {}


# -----------------------------------------------------------------------------
# Delta propagation
# -----------------------------------------------------------------------------
def test_delta_classification():
    source = _make_source()
    source.update_context_filter_values(None, {"name": "ann"})
    source.ingest_full_replace(PEOPLE)

    updates = []
    source.on_context_updated(updates.append)
    source.ingest_delta(
        [
            {"id": 1, "name": "Ann", "age": 31},  # updates
            {"id": 5, "name": "Bobby", "age": 35},  # leaves
            {"id": 3, "name": "ANN", "age": 40},  # enters
            {"id": 4, "name": "Joanna", "age": 1},  # stays out
        ],
        removed=[2],
    )

    delta = updates[0].delta
    assert list(delta.updated_lines) == [1]
    assert list(delta.deleted_lines) == [5]
    assert list(delta.added_lines) == [3]
    assert source.active_context.view[1]["age"] == 31


def test_removal_leaves_every_view():
    source = _make_source()
    source.add_context("alt")
    source.ingest_full_replace(PEOPLE)

    source.ingest_delta(removed=[1, 99])

    for context in source.contexts:
        assert 1 not in context.view
    assert 1 not in source.store


def test_delta_equals_full_recompute():
    ops = [
        ([{"id": 6, "name": "ann", "age": 10}], []),
        ([{"id": 1, "name": "Bob", "age": 30}], [5]),
        ([{"id": 2, "name": "Ann", "age": 26}], [3]),
    ]

    incremental = _make_source()
    incremental.update_context_filter_values(None, {"name": "ann"})
    incremental.set_context_sort(None, "-age")
    incremental.ingest_full_replace(PEOPLE)
    for added, removed in ops:
        incremental.ingest_delta(added, removed)

    full = _make_source()
    full.update_context_filter_values(None, {"name": "ann"})
    full.set_context_sort(None, "-age")
    full.ingest_full_replace(incremental.store.records)

    assert _keys(incremental.active_context.records()) == _keys(full.active_context.records())
    assert _keys(full.active_context.records()) == [2, 6]


def test_entering_line_takes_store_position_without_sort():
    records = [{"id": 1, "name": "x", "age": 1}, {"id": 2, "name": "ann", "age": 2}, {"id": 3, "name": "y", "age": 3}]

    incremental = _make_source()
    incremental.add_context("alt", filter_values={"name": "ann"})
    incremental.update_context_filter_values("main", {"name": "ann"})
    incremental.ingest_full_replace(records)
    incremental.ingest_delta([{"id": 3, "name": "ann", "age": 3}, {"id": 1, "name": "ann", "age": 1}])

    full = _make_source()
    full.add_context("alt", filter_values={"name": "ann"})
    full.update_context_filter_values("main", {"name": "ann"})
    full.ingest_full_replace(incremental.store.records)

    for name in ("main", "alt"):
        assert _keys(incremental.get_context(name).records()) == _keys(full.get_context(name).records())
    assert _keys(incremental.get_context("alt").records()) == [1, 2, 3]
    assert incremental.active_context.name == "main"


def test_line_leaving_and_reentering_in_one_batch_keeps_store_position():
    records = [{"id": 1, "name": "ann", "age": 1}, {"id": 2, "name": "ann", "age": 2}]
    source = _make_source()
    source.update_context_filter_values(None, {"name": "ann"})
    source.ingest_full_replace(records)

    source.ingest_delta([{"id": 1, "name": "bob", "age": 1}, {"id": 1, "name": "ann", "age": 5}])

    assert _keys(source.active_context.records()) == [1, 2]


def test_apply_update_wire_format():
    source = _make_source()
    source.ingest_full_replace(PEOPLE)

    result = source.apply_update(
        {
            "addedLines": [{"id": 8, "name": "Eve", "age": 22}],
            "updated_lines": {3: {"id": 3, "name": "Bob", "age": 41}},
            "deletedLines": [{"id": 1}],
        }
    )

    assert [r["id"] for r in result.added] == [8]
    assert [r["id"] for r in result.replaced] == [3]
    assert [r["id"] for r in result.removed] == [1]
    assert 1 not in source.active_context.view
    assert source.active_context.view[3]["age"] == 41


# -----------------------------------------------------------------------------
# Sort / pagination / notifications
# -----------------------------------------------------------------------------
def test_sort_spec_orders_view():
    source = _make_source()
    source.add_context("by_age", sort_spec="-age", is_default=True)
    source.ingest_full_replace(PEOPLE)

    assert _keys(source.active_context.records()) == [3, 5, 1, 2, 4]

    source.set_context_sort(None, "age")
    assert _keys(source.active_context.records()) == [4, 2, 1, 5, 3]


def test_pagination_bounds():
    source = _make_source(page_size=2)
    views = []
    source.on_view_updated(views.append)
    source.ingest_full_replace(PEOPLE)

    last = views[-1]
    assert last.pagination.is_active
    assert (last.pagination.current_page, last.pagination.page_count) == (1, 3)
    assert _keys(last.view) == [1, 2]
    assert last.total_count == 5

    assert source.select_page(3)
    assert _keys(views[-1].view) == [5]
    assert source.select_page(4) is False
    assert source.select_page(0) is False

    source.ingest_delta(removed=[3, 4, 5])
    context = source.active_context
    assert 1 <= context.current_page <= context.page_count == 1


def test_select_page_without_pagination_is_reported(caplog):
    source = _make_source()
    with caplog.at_level(logging.ERROR):
        assert source.select_page(1) is False
    assert "pagination" in caplog.text


def test_view_updated_replays_last_view():
    source = _make_source()
    early = []
    source.on_view_updated(early.append)
    assert early == []

    source.ingest_full_replace(PEOPLE)
    late = []
    source.on_view_updated(late.append)

    assert len(late) == 1
    assert late[0] is early[-1]
    assert late[0].context_name == "main"


def test_full_recompute_reports_whole_view_as_added():
    source = _make_source()
    updates = []
    source.on_context_updated(updates.append)
    source.ingest_full_replace(PEOPLE)

    assert len(updates) == 1
    assert list(updates[0].delta.added_lines) == [1, 2, 3, 4, 5]


def test_payloads_are_snapshots():
    source = _make_source()
    views = []
    source.on_view_updated(views.append)
    source.ingest_full_replace(PEOPLE)
    snapshot = views[-1]

    source.ingest_delta(removed=[1])

    assert _keys(snapshot.view) == [1, 2, 3, 4, 5]


def test_context_update_is_a_snapshot():
    source = _make_source()
    source.update_context_filter_values(None, {"name": "ann"})
    source.ingest_full_replace(PEOPLE)
    updates = []
    source.on_context_updated(updates.append)

    source.ingest_delta([{"id": 6, "name": "ann", "age": 12}])
    captured = updates[-1]
    source.update_context_filter_values(None, {"name": "bob"})
    source.ingest_delta([{"id": 7, "name": "bob", "age": 70}], removed=[1])

    assert captured.context_name == "main"
    assert captured.context["name"] == "main"
    assert captured.context["filter_values"] == {"name": "ann"}
    assert _keys(captured.view.values()) == [1, 5, 6]
    assert list(captured.delta.added_lines) == [6]


def test_on_select_recompute_policy():
    source = _make_source(on_context_selected="recompute_view")
    source.add_context("alt")
    source.ingest_full_replace(PEOPLE)
    source.update_context_filter_values("alt", {"name": "bob"})

    source.set_active_context("alt")

    assert _keys(source.active_context.records()) == [3]


def test_on_select_refresh_policy_emits_without_delta():
    source = _make_source(on_context_selected=ContextSelectedMode.REFRESH_VIEW)
    source.add_context("alt")
    source.ingest_full_replace(PEOPLE)

    updates = []
    views = []
    source.on_context_updated(updates.append)
    source.on_view_updated(views.append)
    views.clear()

    source.set_active_context("alt")

    assert [u.context_name for u in updates] == ["alt"]
    assert updates[0].delta is None
    assert views[-1].context_name == "alt"


def test_on_select_do_nothing_policy():
    source = _make_source()
    source.add_context("alt")
    source.ingest_full_replace(PEOPLE)
    updates = []
    source.on_context_updated(updates.append)

    source.set_active_context("alt")

    assert updates == []
    assert source.active_context.name == "alt"


def test_extra_data_hook():
    class _Source(DataSource):
        def make_extra_data_for_notif(self):
            return {"n": len(self.store)}

    source = _Source("id")
    views = []
    source.on_view_updated(views.append)
    source.ingest_full_replace(PEOPLE)

    assert views[-1].extra == {"n": 5}


def test_store_primary_key_must_match():
    with pytest.raises(ConfigurationError):
        DataSource("id", store=CanonicalStore("uid"))


def test_params_dataclass_is_accepted():
    source = DataSource("id", DataSourceParams(source_name="people", page_size=10))
    assert source.source_name == "people"
    assert source.params.pagination_active


def test_close_stops_followed_subscriptions():
    source = _make_source()
    received = []
    source.sub_manager.add(source.store.subscribe(received.append))

    source.close()
    source.ingest_full_replace(PEOPLE)

    assert received == []


def test_filter_change_on_inactive_context_only_notifies_that_context():
    source = _make_source(update_view_on_filter_change=True)
    source.add_context("alt")
    source.ingest_full_replace(PEOPLE)

    context_updates = []
    views = []
    source.on_context_updated(context_updates.append)
    source.on_view_updated(views.append)
    views.clear()

    source.update_context_filter_values("alt", {"name": "bob"})

    assert [u.context_name for u in context_updates] == ["alt"]
    assert views == []
    assert source.active_context.name == "main"
    assert len(source.active_context.view) == 5
