"""
Derived fields for silver tables.

Validity end dates for product history, calendar dates from integer date
codes, and the sales/quantity/price reconciliation for order lines.
"""
import logging
from datetime import date, datetime
from typing import Any, Optional, Tuple

import numpy as np
import pandas as pd

from warehouse_pipeline.normalize import is_missing

logger = logging.getLogger("SilverLayer")

DATE_CODE_FORMAT = "%Y%m%d"
ISO_DATE_FORMAT = "%Y-%m-%d"


def derive_end_dates(df: pd.DataFrame, group_key: str, start_col: str) -> pd.Series:
    """
    Compute the end of validity for each row of a versioned dimension.

    Rows are grouped by ``group_key`` and ordered by ``start_col`` ascending.
    Each row ends the day before the next row in its group starts; the last
    row of a group stays open (NaT). Rows with equal start dates keep their
    input order. Null start dates sort first and null keys form one group.

    Returns:
        Series of end dates aligned to ``df.index``
    """
    starts = pd.to_datetime(df[start_col], errors="coerce")
    order = starts.sort_values(kind="mergesort", na_position="first").index

    next_start = (
        starts.loc[order]
        .groupby(df[group_key].loc[order], sort=False, dropna=False)
        .shift(-1)
    )
    return (next_start - pd.Timedelta(days=1)).reindex(df.index)


def date_from_code(value: Any) -> Optional[date]:
    """
    Convert an integer-encoded date such as 20240115 to a calendar date.

    Only codes of exactly eight digits are converted. Anything else,
    including eight digits that are not a real date, gives None.
    """
    if is_missing(value):
        return None
    try:
        code = int(value)
    except (TypeError, ValueError):
        return None

    text = str(code)
    if len(text) != 8:
        return None
    try:
        return datetime.strptime(text, DATE_CODE_FORMAT).date()
    except ValueError:
        return None


def to_iso_dates(series: pd.Series) -> pd.Series:
    """Format dates as YYYY-MM-DD text, with None for missing values."""
    converted = pd.to_datetime(series, errors="coerce")
    formatted = converted.dt.strftime(ISO_DATE_FORMAT).astype(object)
    return formatted.where(converted.notna(), None)


def null_future_dates(series: pd.Series, today: Optional[date] = None) -> pd.Series:
    """Null out dates later than today (birth dates entered in the future)."""
    today = pd.Timestamp(today or date.today())
    dates = pd.to_datetime(series, errors="coerce")
    future = dates > today
    if future.any():
        logger.info(f"{series.name}: nulled {int(future.sum())} dates in the future")
    return dates.mask(future)


def reconcile_sales(
    sales: pd.Series,
    quantity: pd.Series,
    price: pd.Series
) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """
    Repair the sales/quantity/price triple of order lines.

    All three corrections read the original inputs, never each other's output:
      - sales becomes |quantity * price| when it is null, <= 0, or differs
        from |quantity * price|; when quantity * price is unknown a positive
        stored sales value is kept
      - quantity becomes |quantity| when negative
      - price becomes |sales / quantity| when it is null or <= 0, truncated
        toward zero; a zero or null quantity leaves it null

    Returns:
        (sales, quantity, price) Series aligned to the inputs
    """
    sales = pd.to_numeric(sales, errors="coerce")
    quantity = pd.to_numeric(quantity, errors="coerce")
    price = pd.to_numeric(price, errors="coerce")

    expected = (quantity * price).abs()
    bad_sales = sales.isna() | (sales <= 0) | (expected.notna() & (sales != expected))
    fixed_sales = sales.mask(bad_sales, expected)

    fixed_quantity = quantity.mask(quantity < 0, quantity.abs())

    derived_price = np.trunc(sales / quantity.where(quantity != 0)).abs()
    bad_price = price.isna() | (price <= 0)
    fixed_price = price.mask(bad_price, derived_price)

    logger.info(
        f"Reconciled order lines: {int(bad_sales.sum())} sales, "
        f"{int((quantity < 0).sum())} quantities, {int(bad_price.sum())} prices"
    )
    return fixed_sales, fixed_quantity, fixed_price
