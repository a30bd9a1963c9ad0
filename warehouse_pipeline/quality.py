"""
Post-load quality checks for the silver and gold layers.

Every check is a read-only query that returns the offending rows; an empty
result means the check passed. Checks never modify the warehouse.
"""
import sqlite3
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

import pandas as pd

from warehouse_pipeline.normalize import GENDER, MARITAL_STATUS, NOT_AVAILABLE, PRODUCT_LINE

logger = logging.getLogger("QualityChecks")


@dataclass
class CheckResult:
    name: str
    table: str
    violations: pd.DataFrame

    @property
    def passed(self) -> bool:
        return self.violations.empty


def _allowed(mapping) -> str:
    values = sorted(set(mapping.values()) | {NOT_AVAILABLE})
    return ", ".join(f"'{value}'" for value in values)


def duplicate_key_query(table: str, key: str) -> str:
    return f"""
        SELECT {key}, COUNT(*) AS repetitions
        FROM {table}
        GROUP BY {key}
        HAVING COUNT(*) > 1 OR {key} IS NULL
    """


def untrimmed_query(table: str, column: str) -> str:
    return f"SELECT {column} FROM {table} WHERE {column} != TRIM({column})"


def enumeration_query(table: str, column: str, mapping) -> str:
    return f"""
        SELECT DISTINCT {column}
        FROM {table}
        WHERE {column} IS NULL OR {column} NOT IN ({_allowed(mapping)})
    """


def silver_checks(today: date) -> List[tuple]:
    """(name, table, query) for every silver-layer check."""
    oldest = (pd.Timestamp(today) - pd.DateOffset(years=110)).date()
    checks = [
        ("duplicate or null key", "silver_crm_cust_info",
         duplicate_key_query("silver_crm_cust_info", "cst_id")),
        ("marital status standardized", "silver_crm_cust_info",
         enumeration_query("silver_crm_cust_info", "cst_marital_status", MARITAL_STATUS)),
        ("gender standardized", "silver_crm_cust_info",
         enumeration_query("silver_crm_cust_info", "cst_gndr", GENDER)),
        ("duplicate or null key", "silver_crm_prd_info",
         duplicate_key_query("silver_crm_prd_info", "prd_id")),
        ("cost null or negative", "silver_crm_prd_info",
         "SELECT prd_id, prd_cost FROM silver_crm_prd_info WHERE prd_cost IS NULL OR prd_cost < 0"),
        ("product line standardized", "silver_crm_prd_info",
         enumeration_query("silver_crm_prd_info", "prd_line", PRODUCT_LINE)),
        ("start after end", "silver_crm_prd_info",
         "SELECT * FROM silver_crm_prd_info WHERE prd_start_dt > prd_end_dt"),
        ("order after ship or due", "silver_crm_sales_details",
         "SELECT * FROM silver_crm_sales_details "
         "WHERE sls_order_dt > sls_ship_dt OR sls_order_dt > sls_due_dt"),
        ("ship after due", "silver_crm_sales_details",
         "SELECT * FROM silver_crm_sales_details WHERE sls_ship_dt > sls_due_dt"),
        ("sales inconsistent with quantity and price", "silver_crm_sales_details",
         """
         SELECT sls_ord_num, sls_sales, sls_quantity, sls_price
         FROM silver_crm_sales_details
         WHERE sls_sales != sls_quantity * sls_price
            OR sls_sales IS NULL OR sls_quantity IS NULL OR sls_price IS NULL
            OR sls_sales <= 0 OR sls_quantity <= 0 OR sls_price <= 0
         ORDER BY sls_sales, sls_quantity, sls_price
         """),
        ("unknown product", "silver_crm_sales_details",
         "SELECT sls_ord_num, sls_prd_key FROM silver_crm_sales_details "
         "WHERE sls_prd_key NOT IN (SELECT prd_sls_key FROM silver_crm_prd_info WHERE prd_sls_key IS NOT NULL)"),
        ("unknown customer", "silver_crm_sales_details",
         "SELECT sls_ord_num, sls_cust_id FROM silver_crm_sales_details "
         "WHERE sls_cust_id NOT IN (SELECT cst_id FROM silver_crm_cust_info)"),
        ("birth date out of range", "silver_erp_cust_az12",
         f"SELECT cid, bdate FROM silver_erp_cust_az12 "
         f"WHERE bdate > '{today.isoformat()}' OR bdate < '{oldest.isoformat()}'"),
        ("gender standardized", "silver_erp_cust_az12",
         enumeration_query("silver_erp_cust_az12", "gen", GENDER)),
        ("unknown customer", "silver_erp_loc_a101",
         "SELECT cid FROM silver_erp_loc_a101 "
         "WHERE cid NOT IN (SELECT cst_key FROM silver_crm_cust_info WHERE cst_key IS NOT NULL)"),
        ("blank country", "silver_erp_loc_a101",
         "SELECT cid, cntry FROM silver_erp_loc_a101 WHERE cntry IS NULL OR TRIM(cntry) = ''"),
    ]
    for column in ("cst_key", "cst_firstname", "cst_lastname", "cst_gndr"):
        checks.append((f"untrimmed {column}", "silver_crm_cust_info",
                       untrimmed_query("silver_crm_cust_info", column)))
    checks.append(("untrimmed prd_nm", "silver_crm_prd_info", untrimmed_query("silver_crm_prd_info", "prd_nm")))
    checks.append(("untrimmed sls_ord_num", "silver_crm_sales_details",
                   untrimmed_query("silver_crm_sales_details", "sls_ord_num")))
    for column in ("cat", "subcat", "maintenance"):
        checks.append((f"untrimmed {column}", "silver_erp_px_cat_g1v2",
                       untrimmed_query("silver_erp_px_cat_g1v2", column)))
    return checks


GOLD_CHECKS = [
    ("duplicate surrogate key", "gold_dim_customers",
     duplicate_key_query("gold_dim_customers", "customer_key")),
    ("duplicate surrogate key", "gold_dim_products",
     duplicate_key_query("gold_dim_products", "product_key")),
    ("fact without dimension", "gold_fact_sales",
     """
     SELECT f.*
     FROM gold_fact_sales f
     LEFT JOIN gold_dim_customers c ON c.customer_key = f.customer_key
     LEFT JOIN gold_dim_products p ON p.product_key = f.product_key
     WHERE p.product_key IS NULL OR c.customer_key IS NULL
     """),
]


def run_check(conn: sqlite3.Connection, name: str, table: str, query: str) -> CheckResult:
    violations = pd.read_sql(query, conn)
    if violations.empty:
        logger.debug(f"PASS {table}: {name}")
    else:
        logger.warning(f"FAIL {table}: {name} ({len(violations)} rows)")
    return CheckResult(name=name, table=table, violations=violations)


def run_quality_checks(
    conn: sqlite3.Connection,
    include_gold: bool = True,
    today: Optional[date] = None
) -> List[CheckResult]:
    """
    Run every quality check and log a summary.

    Args:
        conn: Connection to a loaded warehouse
        include_gold: Also check the gold views (they must exist)
        today: Reference date for birth date plausibility (default: today)

    Returns:
        One CheckResult per check, passing or not
    """
    checks = silver_checks(today or date.today())
    if include_gold:
        checks = checks + GOLD_CHECKS

    results = [run_check(conn, name, table, query) for name, table, query in checks]

    failed = [result for result in results if not result.passed]
    logger.info(f"Quality checks completed: {len(results) - len(failed)} passed, {len(failed)} failed")
    return results
