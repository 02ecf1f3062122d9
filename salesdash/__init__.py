"""Core (UI-agnostic) sales dashboard logic.

This package contains:
- column role resolution and sale-date parsing
- filter state, explicit filter actions and the row filter engine
- dataset loading (CSV/XLSX -> pandas) and context preparation
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
