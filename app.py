import io
from contextlib import contextmanager
from typing import Dict, List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from salesdash.data import (
    filter_options,
    format_brl,
    load_dashboard_data,
    load_dataset,
    prepare_context,
    rows_to_records,
)
from salesdash.dates import DATE_PRESETS
from salesdash.filters import (
    DashboardFilters,
    clear_all_filters,
    set_chart_axes,
    set_column_filter,
    set_custom_range,
    set_date_preset,
    set_search,
)
from salesdash.investments import Investments, set_cluster_investment, set_manual_investment
from salesdash.metrics_charts import compute_charts
from salesdash.metrics_clusters import compute_clusters
from salesdash.metrics_debug import compute_debug
from salesdash.metrics_kpis import compute_kpis

alt.data_transformers.disable_max_rows()

PRESET_LABELS = {
    "all": "All time",
    "today": "Today",
    "7days": "Last 7 days",
    "15days": "Last 15 days",
    "30days": "Last 30 days",
    "custom": "Custom range",
}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #eef2ff;border: 1px solid #e0e7ff;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #4338ca;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(filters: DashboardFilters) -> str:
    chips = [f"Period: {PRESET_LABELS.get(filters.date_preset, filters.date_preset)}"]
    if filters.date_preset == "custom" and filters.custom_start and filters.custom_end:
        chips[0] += f" ({filters.custom_start:%d/%m/%Y} – {filters.custom_end:%d/%m/%Y})"
    for col, vals in filters.active_column_filters().items():
        chips.append(f"{col}: {len(vals)} selected")
    if filters.search:
        chips.append(f"Search: “{filters.search}”")
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, filters: DashboardFilters, export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>Dashboard / {title}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        if export_df is not None and not export_df.empty:
            st.download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
                key=f"export_{export_name}",
            )
    st.markdown(f"<div class='chip-row'>{format_filter_summary(filters)}</div>", unsafe_allow_html=True)


@st.cache_data(show_spinner=False)
def load_uploaded(content: bytes, name: str) -> Dict[str, object]:
    return load_dataset(io.BytesIO(content), name=name)


# ---------- UI setup ----------
st.set_page_config(page_title="Sales & UTM Dashboard", layout="wide")
inject_base_styles()
st.title("Sales & UTM Dashboard")
st.caption("Revenue, ad spend and UTM performance over the imported sales export.")

if "filters" not in st.session_state:
    st.session_state["filters"] = DashboardFilters()
if "investments" not in st.session_state:
    st.session_state["investments"] = Investments()

with st.sidebar:
    st.markdown("### Data")
    uploaded = st.file_uploader("Sales export (CSV or XLSX)", type=["csv", "xlsx"])

if uploaded is not None:
    data_ctx = load_uploaded(uploaded.getvalue(), uploaded.name)
else:
    data_ctx = load_dashboard_data()

if not data_ctx.get("headers"):
    st.info("Upload a sales export or place a CSV/XLSX file in the data directory.")
    st.stop()

filters: DashboardFilters = st.session_state["filters"]
investments: Investments = st.session_state["investments"]
roles = data_ctx["roles"]

# ----- Sidebar: filters -----
with st.sidebar:
    st.markdown("---")
    st.markdown("### Filters")
    if st.button("Clear all filters", use_container_width=True):
        st.session_state["filters"] = clear_all_filters(filters)
        st.rerun()

    search = st.text_input("Quick search", value=filters.search, placeholder="Search every column...")
    filters = set_search(filters, search)

    if roles.date:
        preset = st.selectbox(
            "Period",
            options=list(DATE_PRESETS),
            index=list(DATE_PRESETS).index(filters.date_preset),
            format_func=lambda p: PRESET_LABELS.get(p, p),
        )
        if preset == "custom":
            d1, d2 = st.columns(2)
            start = d1.date_input("From", value=filters.custom_start, format="DD/MM/YYYY")
            end = d2.date_input("To", value=filters.custom_end, format="DD/MM/YYYY")
            filters = set_custom_range(filters, start, end)
        else:
            filters = set_date_preset(filters, preset)
    else:
        st.caption("No sale-date column found; period filters are disabled.")

    options = filter_options(data_ctx)
    for col in roles.categorical_filter_columns():
        current = [v for v in filters.column_filters.get(col, []) if v in options.get(col, [])]
        selected = st.multiselect(col, options=options.get(col, []), default=current)
        filters = set_column_filter(filters, col, selected)

st.session_state["filters"] = filters

ctx = prepare_context(filters, data_ctx)
filtered_rows: pd.DataFrame = ctx["filtered_rows"]
headers: List[str] = ctx["headers"]


# ----- Page renderers -----
def render_central_page():
    render_page_header("Central Analysis", filters)
    manual = st.number_input(
        "Total ad spend (R$)",
        min_value=0.0,
        value=float(investments.manual),
        step=100.0,
        help="Typed in by hand; kept when filters are cleared.",
    )
    if manual != investments.manual:
        st.session_state["investments"] = set_manual_investment(investments, manual)
        st.rerun()

    kpis = compute_kpis(filters, ctx, investment=investments.manual)["kpis"]
    cols = st.columns(5)
    cols[0].metric("Revenue", format_brl(kpis["revenue"]), help=f"{kpis['sales']:,} sales in the filtered set.")
    cols[1].metric("Ad spend", format_brl(kpis["investment"]))
    cols[2].metric("Taxes (6%)", format_brl(kpis["tax"]))
    cols[3].metric("ROAS", f"{kpis['roas']:.2f}x", help="Revenue / ad spend; 0 when no spend is entered.")
    cols[4].metric("Estimated profit", format_brl(kpis["profit"]), delta=f"Margin {kpis['margin_pct']:.1f}%", delta_color="off")
    if roles.revenue is None:
        st.warning("No revenue column found in this dataset; revenue KPIs are zero.")


def render_utm_page():
    payload = compute_clusters(filters, ctx, investments=investments)
    clusters = payload["clusters"]
    table = pd.DataFrame(clusters)
    render_page_header("UTM DASH", filters, export_df=table.drop(columns=["key"], errors="ignore"), export_name="utm_clusters.csv")
    st.caption("Grouped by product + campaign + term, ranked by number of sales.")
    if table.empty:
        st.info("No sales match the current filters.")
        return

    editor_df = table[["key", "product", "campaign", "term", "sales", "revenue", "investment", "roi", "cpa", "profit"]].copy()
    edited = st.data_editor(
        editor_df,
        hide_index=True,
        use_container_width=True,
        disabled=["key", "product", "campaign", "term", "sales", "revenue", "roi", "cpa", "profit"],
        column_config={
            "key": None,
            "product": st.column_config.TextColumn("Product"),
            "campaign": st.column_config.TextColumn("Campaign"),
            "term": st.column_config.TextColumn("Term"),
            "sales": st.column_config.NumberColumn("Sales", format="%d"),
            "revenue": st.column_config.NumberColumn("Revenue", format="R$ %.2f"),
            "investment": st.column_config.NumberColumn("Invest. (R$)", min_value=0.0, format="%.2f", help="Empty means pending."),
            "roi": st.column_config.NumberColumn("ROI", format="%.2fx"),
            "cpa": st.column_config.NumberColumn("CPA", format="R$ %.2f"),
            "profit": st.column_config.NumberColumn("Profit", format="R$ %.2f"),
        },
        key="cluster_editor",
    )

    updated = investments
    for key, amount in zip(edited["key"], edited["investment"]):
        amount = None if pd.isna(amount) else float(amount)
        if amount != investments.for_cluster(key):
            updated = set_cluster_investment(updated, key, amount)
    if updated != investments:
        st.session_state["investments"] = updated
        st.rerun()


def render_graphs_page():
    render_page_header("Charts", filters)
    categorical = [h for h in headers if ctx["header_types"].get(h) == "string"]
    numeric = [h for h in headers if ctx["header_types"].get(h) == "number"]

    payload = compute_charts(filters, ctx)
    volume = payload["volume"]
    cols = st.columns(3)
    cols[0].metric("Today", f"{volume['today']:,}")
    cols[1].metric("7 days", f"{volume['7days']:,}")
    cols[2].metric("30 days", f"{volume['30days']:,}")

    with card("Cross-tab"):
        axes = payload["axes"]
        a1, a2 = st.columns(2)
        dim = a1.selectbox(
            "Group by",
            options=categorical or headers,
            index=(categorical or headers).index(axes["dimension"]) if axes["dimension"] in (categorical or headers) else 0,
        )
        metric_options = numeric or headers
        metric = a2.selectbox(
            "Sum of",
            options=metric_options,
            index=metric_options.index(axes["metric"]) if axes["metric"] in metric_options else 0,
        )
        if dim != axes["dimension"] or metric != axes["metric"]:
            st.session_state["filters"] = set_chart_axes(filters, dim, metric)
            st.rerun()
        if "crosstab" in payload["charts"]:
            st.vega_lite_chart(payload["charts"]["crosstab"], use_container_width=True)
        else:
            st.info("Nothing to chart for the current filters.")

    with card("Sales by day"):
        if "sales_by_day" in payload["charts"]:
            st.vega_lite_chart(payload["charts"]["sales_by_day"], use_container_width=True)
        else:
            st.info("No parseable sale dates in the filtered set.")

    pie_cols = st.columns(3)
    for col, (name, title) in zip(pie_cols, [("campaign", "Campaigns (top 5)"), ("term", "Terms (top 5)"), ("product", "Products (top 5)")]):
        with col:
            with card(title):
                spec = payload["charts"].get(f"{name}_distribution")
                if spec:
                    st.vega_lite_chart(spec, use_container_width=True)
                else:
                    st.info("Column not available.")


def render_database_page():
    records = pd.DataFrame(rows_to_records(filtered_rows, headers))
    render_page_header(f"Database ({len(filtered_rows):,} records)", filters, export_df=records, export_name="records.csv")
    if records.empty:
        st.info("No records match the current filters.")
        return
    st.dataframe(records.set_index("_id"), use_container_width=True)
    with st.expander("Data quality"):
        dbg = compute_debug(filters, ctx)
        st.json({"roles": dbg["roles"], "row_counts": dbg["row_counts"], "cleaning_checks": dbg["cleaning_checks"]})


tabs = st.tabs(["Central Analysis", "UTM DASH", "Charts", "Database"])
with tabs[0]:
    render_central_page()
with tabs[1]:
    render_utm_page()
with tabs[2]:
    render_graphs_page()
with tabs[3]:
    render_database_page()
