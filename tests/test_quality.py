"""Tests for post-load quality checks."""

from datetime import date

import pytest

from warehouse_pipeline.quality import run_quality_checks, silver_checks
from warehouse_pipeline.silver import create_silver_tables


@pytest.fixture
def dirty_silver(conn):
    create_silver_tables(conn)
    conn.executemany(
        "INSERT INTO silver_crm_cust_info (cst_id, cst_key, cst_firstname, cst_lastname, "
        "cst_marital_status, cst_gndr, cst_create_date) VALUES (?, ?, ?, ?, ?, ?, ?)",
        [
            (1, "AW1", " Bob", "Smith", "Married", "Male", "2024-01-01"),
            (1, "AW1", "Bob", "Smith", "M", "Male", "2024-01-01"),
        ],
    )
    conn.execute(
        "INSERT INTO silver_crm_prd_info (prd_id, prd_cat_id, prd_sls_key, prd_nm, prd_cost, prd_line, "
        "prd_start_dt, prd_end_dt) VALUES (1, 'CO_RF', 'FR-1', 'Frame', -1, 'R', '2024-02-01', '2024-01-01')"
    )
    conn.execute(
        "INSERT INTO silver_crm_sales_details (sls_ord_num, sls_prd_key, sls_cust_id, sls_order_dt, "
        "sls_ship_dt, sls_due_dt, sls_sales, sls_quantity, sls_price) "
        "VALUES ('SO1', 'FR-1', 1, '2024-01-10', '2024-01-05', '2024-01-20', 30, 3, 11)"
    )
    conn.execute("INSERT INTO silver_erp_cust_az12 (cid, bdate, gen) VALUES ('AW1', '1890-01-01', 'Male')")
    conn.execute("INSERT INTO silver_erp_loc_a101 (cid, cntry) VALUES ('AW9', ' ')")
    conn.commit()
    return conn


class TestQualityChecks:
    """Tests for run_quality_checks."""

    def test_clean_warehouse_passes(self, loaded_conn):
        results = run_quality_checks(loaded_conn)

        failed = [(r.table, r.name) for r in results if not r.passed]
        assert failed == []

    def test_dirty_silver_flagged(self, dirty_silver):
        results = run_quality_checks(dirty_silver, include_gold=False, today=date(2024, 1, 1))

        failed = {(r.table, r.name) for r in results if not r.passed}
        assert failed == {
            ("silver_crm_cust_info", "duplicate or null key"),
            ("silver_crm_cust_info", "marital status standardized"),
            ("silver_crm_cust_info", "untrimmed cst_firstname"),
            ("silver_crm_prd_info", "cost null or negative"),
            ("silver_crm_prd_info", "product line standardized"),
            ("silver_crm_prd_info", "start after end"),
            ("silver_crm_sales_details", "order after ship or due"),
            ("silver_crm_sales_details", "sales inconsistent with quantity and price"),
            ("silver_erp_cust_az12", "birth date out of range"),
            ("silver_erp_loc_a101", "unknown customer"),
            ("silver_erp_loc_a101", "blank country"),
        }

    def test_violations_returned(self, dirty_silver):
        results = run_quality_checks(dirty_silver, include_gold=False, today=date(2024, 1, 1))
        duplicates = next(
            r for r in results if r.table == "silver_crm_cust_info" and r.name == "duplicate or null key"
        )

        assert duplicates.violations["cst_id"].tolist() == [1]
        assert duplicates.violations["repetitions"].tolist() == [2]

    def test_checks_do_not_modify_data(self, dirty_silver):
        run_quality_checks(dirty_silver, include_gold=False)

        assert dirty_silver.execute("SELECT COUNT(*) FROM silver_crm_cust_info").fetchone()[0] == 2

    def test_gold_checks_included(self, loaded_conn):
        with_gold = run_quality_checks(loaded_conn)
        without_gold = run_quality_checks(loaded_conn, include_gold=False)

        assert len(with_gold) == len(without_gold) + 3
        assert {r.table for r in with_gold} >= {"gold_dim_customers", "gold_dim_products", "gold_fact_sales"}

    def test_birth_date_window(self):
        checks = {(table, name): query for name, table, query in silver_checks(date(2024, 1, 1))}
        query = checks[("silver_erp_cust_az12", "birth date out of range")]

        assert "'2024-01-01'" in query
        assert "'1914-01-01'" in query
