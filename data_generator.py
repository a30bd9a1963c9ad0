#!/usr/bin/env python3
"""
CRM/ERP Extract Generator

Generates synthetic source extracts for the warehouse: customers, product
history and order lines from the CRM, plus customer demographics, locations
and product categories from the ERP. The data is deliberately dirty (padded
names, duplicate customer versions, missing costs, inconsistent sales, short
date codes, prefixed and hyphenated ids, abbreviated countries) so that every
silver cleaning rule has something to do.
"""

import os
import argparse
from datetime import date, timedelta
from typing import Dict, List

import numpy as np
import pandas as pd

from utils.logger import setup_logger

logger = setup_logger("Data_Generator", log_file="data_generator.log")

DEFAULT_OUTPUT_DIR = "datasets"
DEFAULT_NUM_CUSTOMERS = 500
DEFAULT_NUM_ORDERS = 3000
DEFAULT_SEED = 42
FIRST_CUSTOMER_ID = 11000

FIRST_NAMES = ["Jon", "Eugene", "Ruben", "Christy", "Elizabeth", "Julio", "Janet", "Marco", "Rob", "Shannon"]
LAST_NAMES = ["Yang", "Huang", "Torres", "Zhu", "Johnson", "Ruiz", "Alvarez", "Mehta", "Verhoff", "Carlson"]
COUNTRY_CODES = ["DE", "US", "USA", "", "Australia", "United Kingdom ", "Canada", "France"]

CATEGORIES = [
    ("AC_BR", "Accessories", "Bike Racks", "Yes"),
    ("AC_HE", "Accessories", "Helmets", "Yes"),
    ("BI_MB", "Bikes", "Mountain Bikes", "Yes"),
    ("BI_RB", "Bikes", "Road Bikes", "Yes"),
    ("BI_TB", "Bikes", "Touring Bikes", "Yes"),
    ("CL_JE", "Clothing", "Jerseys", "No"),
    ("CO_RF", "Components", "Road Frames", "Yes"),
    ("CO_PD", "Components", "Pedals", "No"),
]

PRODUCT_LINES = ["M", "R", "S", "T", "", "r "]


def generate_customers(rng: np.random.Generator, num_customers: int) -> pd.DataFrame:
    """CRM customers, with some customers re-entered later and some rows missing an id."""
    records = []
    start = date(2025, 1, 1)
    for i in range(num_customers):
        cst_id = FIRST_CUSTOMER_ID + i
        first = rng.choice(FIRST_NAMES)
        last = rng.choice(LAST_NAMES)
        records.append({
            "cst_id": cst_id,
            "cst_key": f"AW{cst_id:08d}",
            "cst_firstname": f" {first}" if rng.random() < 0.1 else first,
            "cst_lastname": f"{last}  " if rng.random() < 0.1 else last,
            "cst_marital_status": rng.choice(["M", "S", "s", ""]),
            "cst_gndr": rng.choice(["M", "F", "f ", ""]),
            "cst_create_date": (start + timedelta(days=int(rng.integers(0, 300)))).isoformat(),
        })

    # Re-entered customers: a newer version of an existing row
    for record in list(records[: max(1, num_customers // 20)]):
        newer = dict(record)
        newer["cst_create_date"] = (date.fromisoformat(record["cst_create_date"]) + timedelta(days=30)).isoformat()
        newer["cst_marital_status"] = "M"
        records.append(newer)

    records.append({**records[0], "cst_id": None})
    return pd.DataFrame(records)


def generate_products(rng: np.random.Generator) -> pd.DataFrame:
    """CRM product history: several products have more than one cost/line version."""
    records = []
    prd_id = 200
    for cat_id, _, subcat, _ in CATEGORIES:
        if cat_id == "CO_PD":
            continue
        for n in range(3):
            sales_key = f"{subcat[:2].upper()}-{cat_id[-2:]}{n:02d}-{40 + 2 * n}"
            versions = int(rng.integers(1, 4))
            start = date(2011, 7, 1)
            for _ in range(versions):
                cost = int(rng.integers(5, 900))
                records.append({
                    "prd_id": prd_id,
                    "prd_key": f"{cat_id.replace('_', '-')}-{sales_key}",
                    "prd_nm": f"{subcat} {sales_key}",
                    "prd_cost": None if rng.random() < 0.05 else cost,
                    "prd_line": rng.choice(PRODUCT_LINES),
                    "prd_start_dt": start.isoformat(),
                    "prd_end_dt": None,
                })
                prd_id += 1
                start = start + timedelta(days=int(rng.integers(200, 500)))
    return pd.DataFrame(records)


def generate_sales(rng: np.random.Generator, products: pd.DataFrame, num_customers: int, num_orders: int) -> pd.DataFrame:
    """CRM order lines with broken date codes and inconsistent sales/quantity/price."""
    sales_keys = sorted({key[6:] for key in products["prd_key"]})
    records = []
    for i in range(num_orders):
        order_day = date(2012, 1, 1) + timedelta(days=int(rng.integers(0, 1000)))
        quantity = int(rng.integers(1, 4))
        price = int(rng.integers(2, 2500))
        sales = quantity * price

        roll = rng.random()
        if roll < 0.03:
            sales = None
        elif roll < 0.06:
            sales = -sales
        elif roll < 0.08:
            sales = sales + 7
        price_value = price
        if rng.random() < 0.04:
            price_value = None if rng.random() < 0.5 else -price

        order_code = int(order_day.strftime("%Y%m%d"))
        if rng.random() < 0.02:
            order_code = rng.choice([0, 5489])

        records.append({
            "sls_ord_num": f"SO{43697 + i}",
            "sls_prd_key": rng.choice(sales_keys),
            "sls_cust_id": FIRST_CUSTOMER_ID + int(rng.integers(0, num_customers)),
            "sls_order_dt": order_code,
            "sls_ship_dt": int((order_day + timedelta(days=7)).strftime("%Y%m%d")),
            "sls_due_dt": int((order_day + timedelta(days=12)).strftime("%Y%m%d")),
            "sls_sales": sales,
            "sls_quantity": quantity,
            "sls_price": price_value,
        })
    return pd.DataFrame(records)


def generate_erp_tables(rng: np.random.Generator, num_customers: int) -> Dict[str, pd.DataFrame]:
    """ERP demographics, locations and categories keyed the way the ERP stores them."""
    demographics: List[dict] = []
    locations: List[dict] = []
    for i in range(num_customers):
        key = f"AW{FIRST_CUSTOMER_ID + i:08d}"
        birth = date(1940, 1, 1) + timedelta(days=int(rng.integers(0, 25000)))
        if rng.random() < 0.01:
            birth = date.today() + timedelta(days=365)
        demographics.append({
            "cid": f"NAS{key}" if rng.random() < 0.5 else key,
            "bdate": birth.isoformat(),
            "gen": rng.choice(["M", "F", "Male", "Female", " female", ""]),
        })
        locations.append({
            "cid": f"{key[:2]}-{key[2:]}",
            "cntry": rng.choice(COUNTRY_CODES),
        })

    categories = pd.DataFrame(CATEGORIES, columns=["id", "cat", "subcat", "maintenance"])
    return {
        "cust_az12": pd.DataFrame(demographics),
        "loc_a101": pd.DataFrame(locations),
        "px_cat_g1v2": categories,
    }


def generate_extracts(
    output_dir: str = DEFAULT_OUTPUT_DIR,
    num_customers: int = DEFAULT_NUM_CUSTOMERS,
    num_orders: int = DEFAULT_NUM_ORDERS,
    seed: int = DEFAULT_SEED,
) -> Dict[str, str]:
    """
    Write every source extract under output_dir/source_crm and output_dir/source_erp.

    Returns:
        Mapping of extract name to the path written
    """
    rng = np.random.default_rng(seed)
    crm_dir = os.path.join(output_dir, "source_crm")
    erp_dir = os.path.join(output_dir, "source_erp")
    os.makedirs(crm_dir, exist_ok=True)
    os.makedirs(erp_dir, exist_ok=True)

    products = generate_products(rng)
    frames = {
        os.path.join(crm_dir, "cust_info.csv"): generate_customers(rng, num_customers),
        os.path.join(crm_dir, "prd_info.csv"): products,
        os.path.join(crm_dir, "sales_details.csv"): generate_sales(rng, products, num_customers, num_orders),
    }
    for name, df in generate_erp_tables(rng, num_customers).items():
        frames[os.path.join(erp_dir, f"{name}.csv")] = df

    written = {}
    for path, df in frames.items():
        # Nullable integers keep whole numbers free of a trailing ".0"
        for column in df.select_dtypes(include="number").columns:
            df[column] = df[column].astype("Int64")
        df.to_csv(path, index=False)
        written[os.path.splitext(os.path.basename(path))[0]] = path
        logger.info(f"Generated {len(df)} records in {path}")
    return written


def main():
    """Main entry point for the script."""
    parser = argparse.ArgumentParser(description='Generate synthetic CRM/ERP source extracts')
    parser.add_argument('--customers', type=int, default=DEFAULT_NUM_CUSTOMERS,
                        help=f'Number of customers (default: {DEFAULT_NUM_CUSTOMERS})')
    parser.add_argument('--orders', type=int, default=DEFAULT_NUM_ORDERS,
                        help=f'Number of order lines (default: {DEFAULT_NUM_ORDERS})')
    parser.add_argument('--output-dir', type=str, default=DEFAULT_OUTPUT_DIR,
                        help=f'Output directory (default: {DEFAULT_OUTPUT_DIR})')
    parser.add_argument('--seed', type=int, default=DEFAULT_SEED, help='Random seed')
    args = parser.parse_args()

    written = generate_extracts(args.output_dir, args.customers, args.orders, args.seed)
    print(f"Data generation complete. {len(written)} extracts saved to: {args.output_dir}")


if __name__ == "__main__":
    main()
