from datetime import date, datetime

import pytest

from salesdash.data import build_dataset, prepare_context
from salesdash.filters import (
    DashboardFilters,
    clear_all_filters,
    date_matches,
    filter_mask,
    include_row,
    normalize_filters,
    set_chart_axes,
    set_column_filter,
    set_custom_range,
    set_date_preset,
    set_search,
    toggle_filter_value,
)
from salesdash.investments import Investments, set_cluster_investment, set_manual_investment
from salesdash.metrics_clusters import KEY_SEPARATOR, compute_clusters
from salesdash.metrics_kpis import compute_kpis


def _ids(ctx):
    return ctx["filtered_rows"]["_id"].tolist()


def test_no_filters_keeps_every_row(make_ctx):
    assert _ids(make_ctx()) == [0, 1, 2]


def test_custom_range_single_day(make_ctx):
    filters = set_custom_range(DashboardFilters(), "2024-03-01", "2024-03-01")
    ctx = make_ctx(filters)
    assert _ids(ctx) == [0, 2]
    assert ctx["filtered_rows"]["revenue"].sum() == 130


def test_custom_range_with_missing_bound_does_not_filter(make_ctx):
    filters = set_custom_range(DashboardFilters(), "2024-03-10", None)
    assert _ids(make_ctx(filters)) == [0, 1, 2]


def test_search_is_case_insensitive_across_all_headers(make_ctx):
    assert _ids(make_ctx({"search": "a"})) == [0, 1]
    assert _ids(make_ctx({"search": "15/03"})) == [1]
    assert _ids(make_ctx({"search": "30"})) == [2]


def test_search_does_not_match_header_names(make_ctx):
    assert _ids(make_ctx({"search": "revenue"})) == []


def test_categorical_filter(make_ctx):
    filters = set_column_filter(DashboardFilters(), "product", ["B"])
    assert _ids(make_ctx(filters)) == [2]


def test_categorical_filter_matches_numbers_as_strings(make_ctx):
    filters = set_column_filter(DashboardFilters(), "revenue", [50])
    assert _ids(make_ctx(filters)) == [1]


def test_empty_selection_imposes_no_constraint(make_ctx):
    filters = set_column_filter(DashboardFilters(), "product", [])
    assert _ids(make_ctx(filters)) == [0, 1, 2]


def test_predicates_combine_with_and(make_ctx):
    filters = set_custom_range(DashboardFilters(), date(2024, 3, 1), date(2024, 3, 1))
    filters = set_column_filter(filters, "product", ["A"])
    assert _ids(make_ctx(filters)) == [0]


@pytest.mark.parametrize(
    "preset, expected",
    [("all", [0, 1, 2]), ("today", [1]), ("7days", [1]), ("15days", [0, 1, 2]), ("30days", [0, 1, 2])],
)
def test_date_presets(make_ctx, preset, expected):
    assert _ids(make_ctx({"date_preset": preset})) == expected


def test_rolling_window_boundary_uses_end_of_day(now):
    seven_days = DashboardFilters(date_preset="7days")
    assert not date_matches("08/03/2024 23:59", seven_days, now)
    assert date_matches("09/03/2024", seven_days, now)
    assert date_matches("09/03/2024 00:00", seven_days, now)


def test_today_compares_calendar_day(now):
    today = DashboardFilters(date_preset="today")
    assert date_matches("15/03/2024 23:59", today, now)
    assert not date_matches("14/03/2024 23:59", today, now)


def test_unparseable_dates_are_excluded_when_date_filter_active(now):
    data = build_dataset(
        ["date", "product"],
        {},
        [{"date": "someday", "product": "A"}, {"product": "B"}, {"date": "15/03/2024", "product": "C"}],
        position_hints=False,
    )
    ctx = prepare_context({"date_preset": "30days"}, data, now=now)
    assert _ids(ctx) == [2]
    ctx = prepare_context({"date_preset": "all"}, data, now=now)
    assert _ids(ctx) == [0, 1, 2]


def test_date_filter_ignored_without_date_role(now):
    data = build_dataset(["product"], {}, [{"product": "A"}], position_hints=False)
    ctx = prepare_context({"date_preset": "today"}, data, now=now)
    assert _ids(ctx) == [0]


def test_filtering_is_idempotent_and_a_subset(sample_data, now):
    filters = normalize_filters({"date_preset": "30days", "search": "a"})
    once = prepare_context(filters, sample_data, now=now)["filtered_rows"]
    again = prepare_context(filters, {**sample_data, "rows": once}, now=now)["filtered_rows"]
    assert set(once["_id"]) <= set(sample_data["rows"]["_id"])
    assert once["_id"].tolist() == again["_id"].tolist()


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"search": "A"},
        {"date_preset": "today"},
        {"date_preset": "custom", "custom_start": "2024-03-02", "custom_end": "2024-03-20"},
        {"column_filters": {"product": ["A", "B"]}, "date_preset": "7days"},
    ],
)
def test_include_row_agrees_with_filter_mask(sample_data, now, raw):
    filters = normalize_filters(raw)
    frame = sample_data["rows"]
    mask = filter_mask(frame, filters, sample_data["roles"], sample_data["headers"], now)
    for _id, row in frame.iterrows():
        assert include_row(row.to_dict(), filters, sample_data["roles"], sample_data["headers"], now) == bool(mask[_id])


def test_normalize_filters_drops_unknown_values():
    filters = normalize_filters(
        {"date_preset": "yesterday", "column_filters": {"product": ["A", None, "A"], "term": []}, "search": None}
    )
    assert filters.date_preset == "all"
    assert filters.column_filters == {"product": ["A"]}
    assert filters.search == ""


def test_toggle_filter_value():
    filters = toggle_filter_value(DashboardFilters(), "product", "A")
    filters = toggle_filter_value(filters, "product", "B")
    assert filters.column_filters["product"] == ["A", "B"]
    filters = toggle_filter_value(filters, "product", "A")
    assert filters.column_filters["product"] == ["B"]


def test_set_date_preset_rejects_unknown():
    with pytest.raises(ValueError):
        set_date_preset(DashboardFilters(), "yesterday")


def test_set_custom_range_switches_preset():
    filters = set_custom_range(DashboardFilters(date_preset="7days"), "2024-03-01", "2024-03-05")
    assert filters.date_preset == "custom"
    assert (filters.custom_start, filters.custom_end) == (date(2024, 3, 1), date(2024, 3, 5))


def test_actions_do_not_mutate_input():
    base = DashboardFilters()
    set_column_filter(base, "product", ["A"])
    set_search(base, "x")
    set_chart_axes(base, "product", "revenue")
    assert base == DashboardFilters()


def test_clear_all_filters_resets_everything():
    filters = DashboardFilters(
        column_filters={"product": ["A"]},
        date_preset="custom",
        custom_start=date(2024, 3, 1),
        custom_end=date(2024, 3, 2),
        search="abc",
        chart_dimension="product",
        chart_metric="revenue",
    )
    assert clear_all_filters(filters) == DashboardFilters()


def test_clear_all_filters_keeps_investments(sample_data, now):
    key = KEY_SEPARATOR.join(["A", "Orgânico", "N/A"])
    investments = set_cluster_investment(set_manual_investment(Investments(), 90), key, 75)

    filters = DashboardFilters()
    cleared = clear_all_filters(set_search(set_column_filter(filters, "product", ["A"]), "a"))

    before = prepare_context(filters, sample_data, now=now)
    after = prepare_context(cleared, sample_data, now=now)
    kpis_before = compute_kpis(filters, before, investment=investments.manual)["kpis"]
    kpis_after = compute_kpis(cleared, after, investment=investments.manual)["kpis"]
    assert investments.manual == 90
    assert kpis_after["investment"] == kpis_before["investment"] == 90
    assert kpis_after["roas"] == kpis_before["roas"] == pytest.approx(2.0)

    cluster_before = compute_clusters(filters, before, investments=investments)["clusters"][0]
    cluster = compute_clusters(cleared, after, investments=investments)["clusters"][0]
    assert cluster == cluster_before
    assert cluster["key"] == key
    assert cluster["investment"] == 75
    assert cluster["roi"] == pytest.approx(2.0)
