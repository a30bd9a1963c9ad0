import sqlite3
import logging
from datetime import date
from functools import partial
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from warehouse_pipeline.dedup import latest_per_key
from warehouse_pipeline.derive import (
    date_from_code,
    derive_end_dates,
    null_future_dates,
    reconcile_sales,
    to_iso_dates,
)
from warehouse_pipeline.errors import LoadError, SchemaError
from warehouse_pipeline.normalize import (
    COUNTRY,
    GENDER,
    MARITAL_STATUS,
    PRODUCT_LINE,
    apply_rules,
    clean_text,
    remove_hyphens,
    split_product_key,
    standardize,
    strip_prefix,
    trim_columns,
)
from warehouse_pipeline.orchestrator import LayerLoader, LoadResult, TableStep
from warehouse_pipeline.sources import (
    CRM_CUST_INFO,
    CRM_PRD_INFO,
    CRM_SALES_DETAILS,
    ERP_CUST_AZ12,
    ERP_LOC_A101,
    ERP_PX_CAT_G1V2,
    SourceTable,
)

logger = logging.getLogger("SilverLayer")

SILVER_SCHEMAS: Dict[str, Tuple[Tuple[str, str], ...]] = {
    "silver_crm_cust_info": (
        ("cst_id", "INTEGER"),
        ("cst_key", "TEXT"),
        ("cst_firstname", "TEXT"),
        ("cst_lastname", "TEXT"),
        ("cst_marital_status", "TEXT"),
        ("cst_gndr", "TEXT"),
        ("cst_create_date", "DATE"),
    ),
    "silver_crm_prd_info": (
        ("prd_id", "INTEGER"),
        ("prd_cat_id", "TEXT"),
        ("prd_sls_key", "TEXT"),
        ("prd_nm", "TEXT"),
        ("prd_cost", "INTEGER"),
        ("prd_line", "TEXT"),
        ("prd_start_dt", "DATE"),
        ("prd_end_dt", "DATE"),
    ),
    "silver_crm_sales_details": (
        ("sls_ord_num", "TEXT"),
        ("sls_prd_key", "TEXT"),
        ("sls_cust_id", "INTEGER"),
        ("sls_order_dt", "DATE"),
        ("sls_ship_dt", "DATE"),
        ("sls_due_dt", "DATE"),
        ("sls_sales", "INTEGER"),
        ("sls_quantity", "INTEGER"),
        ("sls_price", "INTEGER"),
    ),
    "silver_erp_cust_az12": (
        ("cid", "TEXT"),
        ("bdate", "DATE"),
        ("gen", "TEXT"),
    ),
    "silver_erp_loc_a101": (
        ("cid", "TEXT"),
        ("cntry", "TEXT"),
    ),
    "silver_erp_px_cat_g1v2": (
        ("id", "TEXT"),
        ("cat", "TEXT"),
        ("subcat", "TEXT"),
        ("maintenance", "TEXT"),
    ),
}

CUSTOMER_RULES = {
    "cst_key": clean_text,
    "cst_firstname": clean_text,
    "cst_lastname": clean_text,
    "cst_marital_status": partial(standardize, mapping=MARITAL_STATUS),
    "cst_gndr": partial(standardize, mapping=GENDER),
}

PRODUCT_RULES = {
    "prd_line": partial(standardize, mapping=PRODUCT_LINE),
}

SALES_TEXT_COLUMNS = ("sls_ord_num", "sls_prd_key")

SALES_RULES = {
    "sls_order_dt": date_from_code,
    "sls_ship_dt": date_from_code,
    "sls_due_dt": date_from_code,
}

ERP_CUSTOMER_RULES = {
    "cid": partial(strip_prefix, prefix="NAS"),
    "gen": partial(standardize, mapping=GENDER),
}

ERP_LOCATION_RULES = {
    "cid": remove_hyphens,
    "cntry": partial(standardize, mapping=COUNTRY, keep_unmapped=True),
}


def silver_columns(table: str) -> List[str]:
    return [name for name, _ in SILVER_SCHEMAS[table]]


def create_silver_tables(conn: sqlite3.Connection) -> None:
    """
    Create the silver tables if they don't already exist.

    Every silver table carries dwh_create_date, filled in by SQLite at insert time.
    """
    cursor = conn.cursor()
    for table, columns in SILVER_SCHEMAS.items():
        column_defs = ",\n                ".join(f"{name} {sqltype}" for name, sqltype in columns)
        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                {column_defs},
                dwh_create_date TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)
    conn.commit()


def transform_customers(df: pd.DataFrame) -> pd.DataFrame:
    """
    Keep the most recent record per customer and standardize its fields.
    """
    latest = latest_per_key(df, "cst_id", "cst_create_date")
    silver_df = apply_rules(latest, CUSTOMER_RULES)
    silver_df["cst_create_date"] = to_iso_dates(silver_df["cst_create_date"])
    return silver_df[silver_columns("silver_crm_cust_info")].reset_index(drop=True)


def transform_products(df: pd.DataFrame) -> pd.DataFrame:
    """
    Split the composite product key, clean attributes and derive validity end dates.

    The end date of each product version is the day before the next version
    of the same sales key starts; the current version has no end date.
    """
    silver_df = trim_columns(apply_rules(df, PRODUCT_RULES), ["prd_nm"])

    keys = df["prd_key"].map(split_product_key)
    silver_df["prd_cat_id"] = keys.map(lambda parts: parts[0])
    silver_df["prd_sls_key"] = keys.map(lambda parts: parts[1])

    cost = pd.to_numeric(df["prd_cost"], errors="coerce")
    negative = int((cost < 0).sum())
    if negative:
        logger.warning(f"prd_cost: {negative} negative costs set to 0")
    silver_df["prd_cost"] = cost.fillna(0).clip(lower=0)

    silver_df["prd_start_dt"] = pd.to_datetime(df["prd_start_dt"], errors="coerce").dt.normalize()
    silver_df["prd_end_dt"] = derive_end_dates(silver_df, "prd_sls_key", "prd_start_dt")
    silver_df["prd_start_dt"] = to_iso_dates(silver_df["prd_start_dt"])
    silver_df["prd_end_dt"] = to_iso_dates(silver_df["prd_end_dt"])

    return silver_df[silver_columns("silver_crm_prd_info")].reset_index(drop=True)


def transform_sales(df: pd.DataFrame) -> pd.DataFrame:
    """
    Convert integer date codes and reconcile sales, quantity and price.
    """
    silver_df = trim_columns(apply_rules(df, SALES_RULES), SALES_TEXT_COLUMNS)
    for column in ("sls_order_dt", "sls_ship_dt", "sls_due_dt"):
        silver_df[column] = to_iso_dates(silver_df[column])

    sales, quantity, price = reconcile_sales(df["sls_sales"], df["sls_quantity"], df["sls_price"])
    silver_df["sls_sales"] = sales
    silver_df["sls_quantity"] = quantity
    silver_df["sls_price"] = price

    return silver_df[silver_columns("silver_crm_sales_details")].reset_index(drop=True)


def transform_erp_customers(df: pd.DataFrame, today: Optional[date] = None) -> pd.DataFrame:
    """
    Strip the NAS prefix from customer ids, null future birth dates and standardize gender.
    """
    silver_df = apply_rules(df, ERP_CUSTOMER_RULES)
    silver_df["bdate"] = to_iso_dates(null_future_dates(df["bdate"], today=today))
    return silver_df[silver_columns("silver_erp_cust_az12")].reset_index(drop=True)


def transform_erp_locations(df: pd.DataFrame) -> pd.DataFrame:
    """
    Remove hyphens from customer ids and expand country codes to names.
    """
    silver_df = apply_rules(df, ERP_LOCATION_RULES)
    return silver_df[silver_columns("silver_erp_loc_a101")].reset_index(drop=True)


def transform_erp_categories(df: pd.DataFrame) -> pd.DataFrame:
    # Category master data needs no cleaning
    return df[silver_columns("silver_erp_px_cat_g1v2")].reset_index(drop=True)


# Silver load order
SILVER_TRANSFORMS: List[Tuple[SourceTable, Callable[[pd.DataFrame], pd.DataFrame]]] = [
    (CRM_CUST_INFO, transform_customers),
    (CRM_PRD_INFO, transform_products),
    (CRM_SALES_DETAILS, transform_sales),
    (ERP_CUST_AZ12, transform_erp_customers),
    (ERP_LOC_A101, transform_erp_locations),
    (ERP_PX_CAT_G1V2, transform_erp_categories),
]


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type IN ('table', 'view') AND name = ?", (table,)
    ).fetchone()
    return row is not None


def read_bronze(conn: sqlite3.Connection, source: SourceTable) -> pd.DataFrame:
    """
    Read the raw source columns of a bronze table.
    """
    if not table_exists(conn, source.bronze_table):
        raise SchemaError(f"Bronze table {source.bronze_table} does not exist", state="extract")
    bronze_df = pd.read_sql(f"SELECT {', '.join(source.column_names)} FROM {source.bronze_table}", conn)
    logger.info(f"Read {len(bronze_df)} records from {source.bronze_table}")
    return bronze_df


def write_silver(conn: sqlite3.Connection, table: str, silver_df: pd.DataFrame) -> int:
    """
    Append transformed rows to a (freshly truncated) silver table.

    Returns:
        Number of rows written
    """
    try:
        silver_df.to_sql(table, conn, if_exists='append', index=False)
    except sqlite3.Error as e:
        raise LoadError(
            f"Insert into {table} rejected: {e}", code=getattr(e, "sqlite_errorcode", None), state="insert"
        ) from e
    conn.commit()
    return len(silver_df)


def build_silver_steps(conn: sqlite3.Connection) -> List[TableStep]:
    steps = []
    for source, transform in SILVER_TRANSFORMS:
        steps.append(TableStep(
            table=source.silver_table,
            extract=partial(read_bronze, conn, source),
            transform=transform,
            insert=partial(write_silver, conn, source.silver_table),
            group=source.system.upper(),
        ))
    return steps


def load_silver(conn: sqlite3.Connection) -> LoadResult:
    """
    Truncate and reload every silver table from the current bronze snapshot.

    Tables load one at a time in a fixed order. A failure stops the remaining
    tables; the failing table may be left empty, tables already reloaded keep
    their new contents.
    """
    create_silver_tables(conn)
    return LayerLoader("silver", conn, build_silver_steps(conn)).run()
