import sqlite3
import logging
from datetime import date
from functools import partial
from typing import Dict, List, Optional

import pandas as pd

from warehouse_pipeline.derive import to_iso_dates
from warehouse_pipeline.orchestrator import LayerLoader, LoadResult, TableStep, failure_from_exception
from warehouse_pipeline.reports import build_customer_report, build_product_report

logger = logging.getLogger("GoldLayer")

# Star schema over the silver tables. Surrogate keys are assigned at query time.
GOLD_VIEWS: Dict[str, str] = {
    "gold_dim_customers": """
        CREATE VIEW gold_dim_customers AS
        SELECT
            ROW_NUMBER() OVER (ORDER BY ci.cst_id) AS customer_key,
            ci.cst_id AS customer_id,
            ci.cst_key AS customer_number,
            ci.cst_firstname AS first_name,
            ci.cst_lastname AS last_name,
            cl.cntry AS country,
            ci.cst_marital_status AS marital_status,
            CASE
                WHEN ci.cst_gndr != 'n/a' THEN ci.cst_gndr
                ELSE COALESCE(ca.gen, 'n/a')
            END AS gender,
            ca.bdate AS birthdate,
            ci.cst_create_date AS create_date
        FROM silver_crm_cust_info ci
        LEFT JOIN silver_erp_cust_az12 ca ON ci.cst_key = ca.cid
        LEFT JOIN silver_erp_loc_a101 cl ON ci.cst_key = cl.cid
    """,
    "gold_dim_products": """
        CREATE VIEW gold_dim_products AS
        SELECT
            ROW_NUMBER() OVER (ORDER BY pn.prd_start_dt, pn.prd_sls_key) AS product_key,
            pn.prd_id AS product_id,
            pn.prd_sls_key AS product_number,
            pn.prd_nm AS product_name,
            pn.prd_cat_id AS category_id,
            pc.cat AS category,
            pc.subcat AS subcategory,
            pc.maintenance,
            pn.prd_cost AS cost,
            pn.prd_line AS product_line,
            pn.prd_start_dt AS start_date
        FROM silver_crm_prd_info pn
        LEFT JOIN silver_erp_px_cat_g1v2 pc ON pn.prd_cat_id = pc.id
        WHERE pn.prd_end_dt IS NULL
    """,
    "gold_fact_sales": """
        CREATE VIEW gold_fact_sales AS
        SELECT
            sd.sls_ord_num AS order_number,
            pr.product_key,
            cu.customer_key,
            sd.sls_order_dt AS order_date,
            sd.sls_ship_dt AS shipping_date,
            sd.sls_due_dt AS due_date,
            sd.sls_sales AS sales_amount,
            sd.sls_quantity AS quantity,
            sd.sls_price AS price
        FROM silver_crm_sales_details sd
        LEFT JOIN gold_dim_products pr ON sd.sls_prd_key = pr.product_number
        LEFT JOIN gold_dim_customers cu ON sd.sls_cust_id = cu.customer_id
    """,
}


def create_gold_views(conn: sqlite3.Connection) -> List[str]:
    """
    Drop and recreate the gold views so they always match the current definitions.

    Views are created in dependency order: dimensions before the fact view.

    Returns:
        Names of the views created
    """
    cursor = conn.cursor()
    for view in reversed(list(GOLD_VIEWS)):
        cursor.execute(f"DROP VIEW IF EXISTS {view}")
    for view, ddl in GOLD_VIEWS.items():
        cursor.execute(ddl)
        logger.info(f"Created view {view}")
    conn.commit()
    return list(GOLD_VIEWS)


def get_layer_stats(conn: sqlite3.Connection) -> Dict[str, int]:
    """
    Get record counts for every warehouse table and view.

    Returns:
        Dictionary mapping table name to row count
    """
    cursor = conn.cursor()
    cursor.execute(
        "SELECT name FROM sqlite_master WHERE type IN ('table', 'view') "
        "AND (name LIKE 'bronze_%' OR name LIKE 'silver_%' OR name LIKE 'gold_%') ORDER BY name"
    )
    stats = {}
    for (name,) in cursor.fetchall():
        cursor.execute(f"SELECT COUNT(*) FROM {name}")
        stats[name] = cursor.fetchone()[0]
    return stats


REPORT_BUILDERS = {
    "gold_report_customers": build_customer_report,
    "gold_report_products": build_product_report,
}


def write_report(conn: sqlite3.Connection, table: str, report_df: pd.DataFrame) -> int:
    """
    Replace a materialized report table with a freshly built report.
    """
    report_df = report_df.copy()
    for column in report_df.select_dtypes(include="datetime").columns:
        report_df[column] = to_iso_dates(report_df[column])
    report_df.to_sql(table, conn, if_exists='replace', index=False)
    conn.commit()
    return len(report_df)


def load_gold(conn: sqlite3.Connection, today: Optional[date] = None) -> LoadResult:
    """
    Recreate the gold views and rebuild the materialized customer and product reports.
    """
    steps = [
        TableStep(
            table=table,
            extract=partial(builder, conn, today),
            insert=partial(write_report, conn, table),
            group="Report",
            truncate=False,
        )
        for table, builder in REPORT_BUILDERS.items()
    ]
    try:
        create_gold_views(conn)
    except sqlite3.Error as e:
        failure = failure_from_exception(e, "views", None)
        logger.error(f"Error creating gold views: {failure.message}")
        return LoadResult(layer="gold", success=False, failure=failure)
    return LayerLoader("gold", conn, steps).run()
