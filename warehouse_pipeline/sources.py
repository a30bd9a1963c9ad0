"""
Source table catalogue.

Each CRM and ERP extract is described once here: where its file lives, the
column order of the file, the SQLite type each column is loaded as, and an
optional cutoff on the number of data rows read.
"""
import os
from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class SourceTable:
    name: str
    system: str
    filename: str
    columns: Tuple[Tuple[str, str], ...]
    max_rows: Optional[int] = None

    @property
    def bronze_table(self) -> str:
        return f"bronze_{self.name}"

    @property
    def silver_table(self) -> str:
        return f"silver_{self.name}"

    @property
    def column_names(self) -> List[str]:
        return [name for name, _ in self.columns]

    def path(self, data_dir: str) -> str:
        return os.path.join(data_dir, f"source_{self.system}", self.filename)


CRM_CUST_INFO = SourceTable(
    name="crm_cust_info",
    system="crm",
    filename="cust_info.csv",
    columns=(
        ("cst_id", "INTEGER"),
        ("cst_key", "TEXT"),
        ("cst_firstname", "TEXT"),
        ("cst_lastname", "TEXT"),
        ("cst_marital_status", "TEXT"),
        ("cst_gndr", "TEXT"),
        ("cst_create_date", "DATE"),
    ),
)

CRM_PRD_INFO = SourceTable(
    name="crm_prd_info",
    system="crm",
    filename="prd_info.csv",
    columns=(
        ("prd_id", "INTEGER"),
        ("prd_key", "TEXT"),
        ("prd_nm", "TEXT"),
        ("prd_cost", "INTEGER"),
        ("prd_line", "TEXT"),
        ("prd_start_dt", "DATETIME"),
        ("prd_end_dt", "DATETIME"),
    ),
)

CRM_SALES_DETAILS = SourceTable(
    name="crm_sales_details",
    system="crm",
    filename="sales_details.csv",
    columns=(
        ("sls_ord_num", "TEXT"),
        ("sls_prd_key", "TEXT"),
        ("sls_cust_id", "INTEGER"),
        ("sls_order_dt", "INTEGER"),
        ("sls_ship_dt", "INTEGER"),
        ("sls_due_dt", "INTEGER"),
        ("sls_sales", "INTEGER"),
        ("sls_quantity", "INTEGER"),
        ("sls_price", "INTEGER"),
    ),
)

ERP_LOC_A101 = SourceTable(
    name="erp_loc_a101",
    system="erp",
    filename="loc_a101.csv",
    columns=(
        ("cid", "TEXT"),
        ("cntry", "TEXT"),
    ),
)

# The ERP customer extract carries trailing junk after the last real record.
ERP_CUST_AZ12 = SourceTable(
    name="erp_cust_az12",
    system="erp",
    filename="cust_az12.csv",
    columns=(
        ("cid", "TEXT"),
        ("bdate", "DATE"),
        ("gen", "TEXT"),
    ),
    max_rows=18484,
)

ERP_PX_CAT_G1V2 = SourceTable(
    name="erp_px_cat_g1v2",
    system="erp",
    filename="px_cat_g1v2.csv",
    columns=(
        ("id", "TEXT"),
        ("cat", "TEXT"),
        ("subcat", "TEXT"),
        ("maintenance", "TEXT"),
    ),
)

# Bronze load order
SOURCE_TABLES = [
    CRM_CUST_INFO,
    CRM_PRD_INFO,
    CRM_SALES_DETAILS,
    ERP_LOC_A101,
    ERP_CUST_AZ12,
    ERP_PX_CAT_G1V2,
]
