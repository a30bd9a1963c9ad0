"""
Customer and product reports built from the gold star schema.

Both reports only consider order lines with a known order date. Lifespan and
recency are counted in calendar-month boundaries crossed, and ages in
calendar-year boundaries crossed.
"""
import sqlite3
import logging
from datetime import date
from typing import Optional

import numpy as np
import pandas as pd

logger = logging.getLogger("GoldLayer")

CUSTOMER_BASE_QUERY = """
    SELECT
        f.order_number,
        f.product_key,
        f.order_date,
        f.sales_amount,
        f.quantity,
        c.customer_key,
        c.customer_number,
        c.first_name,
        c.last_name,
        c.birthdate
    FROM gold_fact_sales f
    LEFT JOIN gold_dim_customers c ON f.customer_key = c.customer_key
    WHERE f.order_date IS NOT NULL
"""

PRODUCT_BASE_QUERY = """
    SELECT
        f.order_number,
        f.product_key,
        f.sales_amount,
        f.quantity,
        f.price,
        p.product_name,
        p.category,
        p.subcategory,
        p.cost,
        f.order_date,
        f.customer_key
    FROM gold_fact_sales f
    LEFT JOIN gold_dim_products p ON f.product_key = p.product_key
    WHERE f.order_date IS NOT NULL
"""

PRODUCT_SEGMENTS = {1: "High-Performer", 2: "Mid-Performer", 3: "Low-Performer"}

CUSTOMER_REPORT_COLUMNS = [
    "customer_key", "customer_number", "customer_name", "customer_age", "age_group",
    "total_orders", "total_sales", "total_quantity", "total_products",
    "avg_order_value", "avg_monthly_spend", "customer_segment",
    "first_order", "last_order", "lifespan_months", "customer_recency_months",
]

PRODUCT_REPORT_COLUMNS = [
    "product_key", "product_name", "category", "subcategory", "price",
    "total_orders", "total_quantity_sold", "total_sales", "avg_selling_price",
    "avg_order_revenue", "avg_monthly_revenue", "product_segment",
    "first_order_date", "last_order_date", "lifespan_months",
    "product_recency_months", "total_customers",
]


def months_between(start: pd.Series, end) -> pd.Series:
    """Number of month boundaries between two dates (end minus start)."""
    end_year = end.dt.year if isinstance(end, pd.Series) else end.year
    end_month = end.dt.month if isinstance(end, pd.Series) else end.month
    return (end_year - start.dt.year) * 12 + (end_month - start.dt.month)


def ntile(n: int, buckets: int) -> np.ndarray:
    """
    Bucket numbers 1..buckets for n rows already in rank order.

    The first ``n % buckets`` buckets receive one extra row.
    """
    size, extra = divmod(n, buckets)
    positions = np.arange(n)
    threshold = extra * (size + 1)
    big = positions // (size + 1) + 1
    small = extra + (positions - threshold) // max(size, 1) + 1
    return np.where(positions < threshold, big, small)


def age_group(age) -> str:
    if pd.isna(age):
        return "50 and Above"
    if age < 20:
        return "Under 20"
    if age <= 29:
        return "20-29"
    if age <= 39:
        return "30-39"
    if age <= 49:
        return "40-49"
    return "50 and Above"


def customer_segment(lifespan: int, total_sales: float) -> str:
    if lifespan >= 12 and total_sales > 5000:
        return "VIP"
    if lifespan >= 12:
        return "Regular"
    return "New"


def build_customer_report(conn: sqlite3.Connection, today: Optional[date] = None) -> pd.DataFrame:
    """
    Summarise order history, spend and segment per customer.

    Args:
        conn: Connection to a warehouse with the gold views created
        today: Reference date for age and recency (default: today)

    Returns:
        One row per customer with orders
    """
    today = pd.Timestamp(today or date.today())
    base = pd.read_sql(CUSTOMER_BASE_QUERY, conn)
    if base.empty:
        logger.info("No orders found for the customer report")
        return pd.DataFrame(columns=CUSTOMER_REPORT_COLUMNS)
    base["order_date"] = pd.to_datetime(base["order_date"], errors="coerce")
    base["customer_name"] = base["first_name"].fillna("") + " " + base["last_name"].fillna("")
    base["customer_age"] = today.year - pd.to_datetime(base["birthdate"], errors="coerce").dt.year

    report = (
        base.groupby(
            ["customer_key", "customer_number", "customer_name", "customer_age"],
            dropna=False,
            sort=True,
        )
        .agg(
            total_orders=("order_number", "nunique"),
            total_sales=("sales_amount", "sum"),
            total_quantity=("quantity", "sum"),
            total_products=("product_key", "nunique"),
            first_order=("order_date", "min"),
            last_order=("order_date", "max"),
        )
        .reset_index()
    )
    report["lifespan_months"] = months_between(report["first_order"], report["last_order"])
    report["age_group"] = report["customer_age"].map(age_group)
    report["avg_order_value"] = (report["total_sales"] / report["total_orders"].replace(0, np.nan)).round(2)
    report["avg_monthly_spend"] = np.where(
        report["lifespan_months"] == 0,
        report["total_sales"],
        (report["total_sales"] / report["lifespan_months"].replace(0, np.nan)).round(2),
    )
    report["customer_segment"] = [
        customer_segment(lifespan, sales)
        for lifespan, sales in zip(report["lifespan_months"], report["total_sales"])
    ]
    report["customer_recency_months"] = months_between(report["last_order"], today)

    return report[CUSTOMER_REPORT_COLUMNS]


def build_product_report(conn: sqlite3.Connection, today: Optional[date] = None) -> pd.DataFrame:
    """
    Summarise sales performance and tier per product.

    Products are split into three tiers by total sales, highest first.
    """
    today = pd.Timestamp(today or date.today())
    base = pd.read_sql(PRODUCT_BASE_QUERY, conn)
    if base.empty:
        logger.info("No orders found for the product report")
        return pd.DataFrame(columns=PRODUCT_REPORT_COLUMNS)
    base["order_date"] = pd.to_datetime(base["order_date"], errors="coerce")
    base["unit_price"] = base["sales_amount"] / base["quantity"].replace(0, np.nan)

    report = (
        base.groupby(
            ["product_key", "product_name", "category", "subcategory", "price"],
            dropna=False,
            sort=True,
        )
        .agg(
            total_orders=("order_number", "nunique"),
            total_sales=("sales_amount", "sum"),
            total_quantity_sold=("quantity", "sum"),
            avg_selling_price=("unit_price", "mean"),
            first_order_date=("order_date", "min"),
            last_order_date=("order_date", "max"),
            total_customers=("customer_key", "nunique"),
        )
        .reset_index()
    )

    report["avg_selling_price"] = report["avg_selling_price"].round(2)
    report["lifespan_months"] = months_between(report["first_order_date"], report["last_order_date"])
    report["avg_order_revenue"] = (report["total_sales"] / report["total_orders"].replace(0, np.nan)).round(2)
    report["avg_monthly_revenue"] = np.where(
        report["lifespan_months"] == 0,
        report["total_sales"],
        (report["total_sales"] / report["lifespan_months"].replace(0, np.nan)).round(2),
    )

    ranked = report.sort_values("total_sales", ascending=False, kind="mergesort").index
    tiers = pd.Series(ntile(len(report), 3), index=ranked)
    report["product_segment"] = tiers.reindex(report.index).map(PRODUCT_SEGMENTS)
    report["product_recency_months"] = months_between(report["last_order_date"], today)

    return report[PRODUCT_REPORT_COLUMNS]
