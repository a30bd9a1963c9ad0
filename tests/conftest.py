"""Pytest configuration and fixtures."""

import os
import sqlite3
from datetime import date

import pandas as pd
import pytest

# Reference date for reports and birth date checks
TODAY = date(2015, 1, 1)

SOURCE_FILES = {
    ("crm", "cust_info.csv"): [
        "cst_id,cst_key,cst_firstname,cst_lastname,cst_marital_status,cst_gndr,cst_create_date",
        "11000,AW00011000, Jon ,Yang,M,M,2025-01-01",
        "11000,AW00011000,Jon,Yang,S,M,2025-02-01",
        "11001,AW00011001,Eugene,Huang ,s,F,2025-01-05",
        ",AW00011002,Ghost,Row,M,M,2025-01-01",
    ],
    ("crm", "prd_info.csv"): [
        "prd_id,prd_key,prd_nm,prd_cost,prd_line,prd_start_dt,prd_end_dt",
        "210,CO-RF-FR-R92B-58,HL Road Frame ,,R ,2011-07-01,",
        "211,CO-RF-FR-R92B-58,HL Road Frame,1000,r,2012-07-01,",
        "212,BI-MB-BK-M68B-38,Mountain-200,1200,M,2013-07-01,",
    ],
    ("crm", "sales_details.csv"): [
        "sls_ord_num,sls_prd_key,sls_cust_id,sls_order_dt,sls_ship_dt,sls_due_dt,sls_sales,sls_quantity,sls_price",
        "SO43697,FR-R92B-58,11000,20130115,20130122,20130127,,3,10",
        "SO43698,BK-M68B-38,11001,20130301,20130308,20130313,-50,2,25",
        "SO43699,BK-M68B-38,11000,2013,20140308,20140313,40,1,",
        "SO43700,FR-R92B-58,11001,20140601,20140608,20140613,100,4,25",
    ],
    ("erp", "loc_a101.csv"): [
        "cid,cntry",
        "AW-00011000,DE",
        "AW-00011001,",
    ],
    ("erp", "cust_az12.csv"): [
        "cid,bdate,gen",
        "NASAW00011000,1980-05-04,Male",
        "AW00011001,2999-01-01, f",
    ],
    ("erp", "px_cat_g1v2.csv"): [
        "id,cat,subcat,maintenance",
        "CO_RF,Components,Road Frames,Yes",
        "BI_MB,Bikes,Mountain Bikes,Yes",
    ],
}


@pytest.fixture
def conn():
    """In-memory warehouse connection."""
    connection = sqlite3.connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def source_dir(tmp_path):
    """A small set of dirty CRM and ERP extracts laid out as source_crm/ and source_erp/."""
    data_dir = tmp_path / "datasets"
    for (system, filename), lines in SOURCE_FILES.items():
        folder = data_dir / f"source_{system}"
        folder.mkdir(parents=True, exist_ok=True)
        (folder / filename).write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(data_dir)


@pytest.fixture
def loaded_conn(conn, source_dir):
    """Connection with bronze, silver and gold loaded from source_dir."""
    from warehouse_pipeline.bronze import load_bronze
    from warehouse_pipeline.gold import load_gold
    from warehouse_pipeline.silver import load_silver

    assert load_bronze(conn, source_dir).success
    assert load_silver(conn).success
    assert load_gold(conn, today=TODAY).success
    return conn


@pytest.fixture
def write_csv(tmp_path):
    """Write lines to a file under tmp_path and return its path."""
    def _write(name, lines):
        path = os.path.join(str(tmp_path), name)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write("\n".join(lines) + "\n")
        return path
    return _write


@pytest.fixture
def raw_customers():
    """Bronze customer rows: one customer entered twice and one row without an id."""
    return pd.DataFrame([
        {"cst_id": 1, "cst_key": "AW1", "cst_firstname": " Bob ", "cst_lastname": "Smith",
         "cst_marital_status": "M", "cst_gndr": "m", "cst_create_date": "2025-01-01"},
        {"cst_id": 1, "cst_key": "AW1", "cst_firstname": "Bob", "cst_lastname": "Smith",
         "cst_marital_status": "S", "cst_gndr": "M", "cst_create_date": "2025-03-01"},
        {"cst_id": 2, "cst_key": "AW2 ", "cst_firstname": "Ann", "cst_lastname": " Lee",
         "cst_marital_status": "x", "cst_gndr": "", "cst_create_date": "2025-02-01"},
        {"cst_id": None, "cst_key": "AW3", "cst_firstname": "No", "cst_lastname": "Id",
         "cst_marital_status": "M", "cst_gndr": "F", "cst_create_date": "2025-02-01"},
    ])


@pytest.fixture
def raw_products():
    """Bronze product history: two versions of one sales key, one single-version product."""
    return pd.DataFrame([
        {"prd_id": 1, "prd_key": "CO-RF-FR-R92B-58", "prd_nm": " HL Road Frame", "prd_cost": None,
         "prd_line": "R", "prd_start_dt": "2024-01-01 00:00:00", "prd_end_dt": None},
        {"prd_id": 2, "prd_key": "CO-RF-FR-R92B-58", "prd_nm": "HL Road Frame", "prd_cost": 12,
         "prd_line": " s ", "prd_start_dt": "2024-02-01 00:00:00", "prd_end_dt": None},
        {"prd_id": 3, "prd_key": "BI-MB-BK-M68B-38", "prd_nm": "Mountain-200", "prd_cost": -5,
         "prd_line": None, "prd_start_dt": "2023-06-15 00:00:00", "prd_end_dt": "2023-01-01 00:00:00"},
    ])
