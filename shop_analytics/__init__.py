"""Core (UI-agnostic) shop analytics logic.

This package contains:
- report classification (file name -> report kind + header row)
- cell / dataset normalization and validation
- workbook loading, export and preview (XLSX -> records)
- statistics and chart series (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
