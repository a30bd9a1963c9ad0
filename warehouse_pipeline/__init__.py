"""
CRM/ERP Medallion Warehouse Package

Modules:
    sources.py      - Catalogue of the CRM and ERP source extracts.
    bronze.py       - Bulk loads the raw extracts into the bronze layer.
    normalize.py    - Field cleaning and categorical standardization rules.
    dedup.py        - Keeps the latest record per natural key.
    derive.py       - Derived fields: end dates, date codes, sales reconciliation.
    silver.py       - Cleans and standardizes bronze data into the silver layer.
    gold.py         - Star schema views and materialized reports (gold layer).
    reports.py      - Customer and product reports.
    quality.py      - Post-load quality checks.
    orchestrator.py - Sequences table loads, timing and failure reporting.
    run_pipeline.py - Command-line entry point for a full load.

Version: 1.0.0
"""

__version__ = "1.0.0"
