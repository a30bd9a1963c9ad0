"""Tests for the gold star schema and reports."""

from datetime import date

import numpy as np
import pandas as pd
import pytest

from warehouse_pipeline.gold import GOLD_VIEWS, create_gold_views, get_layer_stats, load_gold
from warehouse_pipeline.reports import (
    CUSTOMER_REPORT_COLUMNS,
    PRODUCT_REPORT_COLUMNS,
    age_group,
    build_customer_report,
    build_product_report,
    customer_segment,
    months_between,
    ntile,
)
from warehouse_pipeline.silver import create_silver_tables

TODAY = date(2015, 1, 1)


def _rows(conn, query):
    return conn.execute(query).fetchall()


class TestGoldViews:
    """Tests for the dimension and fact views."""

    def test_dim_customers(self, loaded_conn):
        assert _rows(loaded_conn, """
            SELECT customer_key, customer_id, customer_number, country, gender, birthdate
            FROM gold_dim_customers ORDER BY customer_key
        """) == [
            (1, 11000, "AW00011000", "Germany", "Male", "1980-05-04"),
            (2, 11001, "AW00011001", "n/a", "Female", None),
        ]

    def test_gender_falls_back_to_erp(self, loaded_conn):
        loaded_conn.execute("UPDATE silver_crm_cust_info SET cst_gndr = 'n/a' WHERE cst_id = 11000")

        assert _rows(loaded_conn, "SELECT gender FROM gold_dim_customers WHERE customer_id = 11000") == [("Male",)]

    def test_dim_products_current_only(self, loaded_conn):
        assert _rows(loaded_conn, """
            SELECT product_key, product_id, product_number, product_name, category, cost
            FROM gold_dim_products ORDER BY product_key
        """) == [
            (1, 211, "FR-R92B-58", "HL Road Frame", "Components", 1000),
            (2, 212, "BK-M68B-38", "Mountain-200", "Bikes", 1200),
        ]

    def test_fact_sales_resolves_surrogate_keys(self, loaded_conn):
        assert _rows(loaded_conn, """
            SELECT order_number, product_key, customer_key, sales_amount
            FROM gold_fact_sales ORDER BY order_number
        """) == [
            ("SO43697", 1, 1, 30),
            ("SO43698", 2, 2, 50),
            ("SO43699", 2, 1, 40),
            ("SO43700", 1, 2, 100),
        ]

    def test_views_recreated(self, loaded_conn):
        assert create_gold_views(loaded_conn) == list(GOLD_VIEWS)
        assert _rows(loaded_conn, "SELECT COUNT(*) FROM gold_fact_sales") == [(4,)]

    def test_layer_stats(self, loaded_conn):
        stats = get_layer_stats(loaded_conn)

        assert stats["bronze_crm_cust_info"] == 4
        assert stats["silver_crm_cust_info"] == 2
        assert stats["gold_fact_sales"] == 4
        assert stats["gold_report_customers"] == 2
        assert stats["gold_report_products"] == 3


class TestReportHelpers:
    """Tests for report arithmetic."""

    def test_months_between(self):
        start = pd.Series(pd.to_datetime(["2013-03-31", "2014-06-01"]))
        end = pd.Series(pd.to_datetime(["2014-06-01", "2014-06-30"]))

        assert months_between(start, end).tolist() == [15, 0]

    def test_months_between_scalar_end(self):
        start = pd.Series(pd.to_datetime(["2014-06-01"]))

        assert months_between(start, pd.Timestamp("2015-01-01")).tolist() == [7]

    @pytest.mark.parametrize("n,expected", [
        (3, [1, 2, 3]),
        (7, [1, 1, 1, 2, 2, 3, 3]),
        (2, [1, 2]),
        (6, [1, 1, 2, 2, 3, 3]),
        (0, []),
    ])
    def test_ntile(self, n, expected):
        assert ntile(n, 3).tolist() == expected

    @pytest.mark.parametrize("age,expected", [
        (15, "Under 20"),
        (20, "20-29"),
        (35, "30-39"),
        (49, "40-49"),
        (50, "50 and Above"),
        (np.nan, "50 and Above"),
    ])
    def test_age_group(self, age, expected):
        assert age_group(age) == expected

    def test_customer_segment(self):
        assert customer_segment(12, 5001) == "VIP"
        assert customer_segment(12, 5000) == "Regular"
        assert customer_segment(11, 100000) == "New"


class TestCustomerReport:
    """Tests for the customer report."""

    def test_one_row_per_customer_with_dated_orders(self, loaded_conn):
        report = build_customer_report(loaded_conn, today=TODAY)

        assert list(report.columns) == CUSTOMER_REPORT_COLUMNS
        assert report["customer_number"].tolist() == ["AW00011000", "AW00011001"]

    def test_new_customer(self, loaded_conn):
        report = build_customer_report(loaded_conn, today=TODAY).set_index("customer_number")
        row = report.loc["AW00011000"]

        # SO43699 has no order date and is left out
        assert row["total_orders"] == 1
        assert row["total_sales"] == 30
        assert row["customer_name"] == "Jon Yang"
        assert row["customer_age"] == 35
        assert row["age_group"] == "30-39"
        assert row["lifespan_months"] == 0
        assert row["avg_monthly_spend"] == 30
        assert row["customer_segment"] == "New"
        assert row["customer_recency_months"] == 24

    def test_regular_customer(self, loaded_conn):
        report = build_customer_report(loaded_conn, today=TODAY).set_index("customer_number")
        row = report.loc["AW00011001"]

        assert row["total_orders"] == 2
        assert row["total_sales"] == 150
        assert row["total_quantity"] == 6
        assert row["total_products"] == 2
        assert row["avg_order_value"] == 75.0
        assert row["lifespan_months"] == 15
        assert row["avg_monthly_spend"] == 10.0
        assert row["customer_segment"] == "Regular"
        assert row["customer_recency_months"] == 7
        assert pd.isna(row["customer_age"])
        assert row["age_group"] == "50 and Above"


class TestProductReport:
    """Tests for the product report."""

    def test_grouped_by_product_and_price(self, loaded_conn):
        report = build_product_report(loaded_conn, today=TODAY)

        assert list(report.columns) == PRODUCT_REPORT_COLUMNS
        assert sorted(report["total_sales"].tolist()) == [30, 50, 100]

    def test_performance_tiers(self, loaded_conn):
        report = build_product_report(loaded_conn, today=TODAY).set_index("total_sales")

        assert report.loc[100, "product_segment"] == "High-Performer"
        assert report.loc[50, "product_segment"] == "Mid-Performer"
        assert report.loc[30, "product_segment"] == "Low-Performer"

    def test_product_measures(self, loaded_conn):
        report = build_product_report(loaded_conn, today=TODAY).set_index("total_sales")
        row = report.loc[100]

        assert row["product_name"] == "HL Road Frame"
        assert row["total_quantity_sold"] == 4
        assert row["avg_selling_price"] == 25.0
        assert row["total_customers"] == 1
        assert row["product_recency_months"] == 7


class TestLoadGold:
    """Tests for the gold load."""

    def test_reports_materialized(self, loaded_conn):
        customers = pd.read_sql("SELECT * FROM gold_report_customers ORDER BY customer_key", loaded_conn)

        assert customers["first_order"].tolist() == ["2013-01-15", "2013-03-01"]
        assert customers["last_order"].tolist() == ["2013-01-15", "2014-06-01"]

    def test_rebuild_replaces_reports(self, loaded_conn):
        result = load_gold(loaded_conn, today=TODAY)

        assert result.success
        assert result.rows_loaded == {"gold_report_customers": 2, "gold_report_products": 3}
        assert _rows(loaded_conn, "SELECT COUNT(*) FROM gold_report_products") == [(3,)]

    def test_empty_silver_gives_empty_reports(self, conn):
        create_silver_tables(conn)
        result = load_gold(conn, today=date(2020, 1, 1))

        assert result.success
        assert result.rows_loaded == {"gold_report_customers": 0, "gold_report_products": 0}
