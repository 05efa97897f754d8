"""Core (UI-agnostic) dashboard logic.

This package contains:
- data loading (HTTP endpoint or static JSON fixture -> pandas)
- filter normalization and the customer selection rules
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
