"""Field cleaning and categorical standardization for silver transforms."""

from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import pandas as pd

NOT_AVAILABLE = "n/a"

MARITAL_STATUS = {
    "M": "Married",
    "S": "Single",
}

GENDER = {
    "F": "Female",
    "FEMALE": "Female",
    "M": "Male",
    "MALE": "Male",
}

PRODUCT_LINE = {
    "M": "Mountain",
    "R": "Road",
    "S": "Other Sales",
    "T": "Touring",
}

COUNTRY = {
    "DE": "Germany",
    "US": "United States",
    "USA": "United States",
}


def is_missing(value: Any) -> bool:
    """True for None and pandas/numpy missing markers."""
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def clean_text(value: Any) -> Optional[str]:
    """Strip surrounding whitespace; missing values stay missing."""
    if is_missing(value):
        return None
    return str(value).strip()


def standardize(
    value: Any,
    mapping: Dict[str, str],
    default: str = NOT_AVAILABLE,
    keep_unmapped: bool = False,
) -> str:
    """
    Map a raw code through an enumeration table.

    Matching is case-insensitive on the trimmed value. Blank and missing
    values map to ``default``. Unmapped values map to ``default`` too, unless
    ``keep_unmapped`` is set, in which case the trimmed value is kept.
    """
    text = clean_text(value)
    if not text:
        return default
    mapped = mapping.get(text.upper())
    if mapped is not None:
        return mapped
    return text if keep_unmapped else default


def split_product_key(prd_key: Any) -> Tuple[Optional[str], Optional[str]]:
    """
    Split a composite product key into (category id, sales key).

    ``CO-RF-FR-R92B-58`` -> ``("CO_RF", "FR-R92B-58")``
    """
    text = clean_text(prd_key)
    if text is None:
        return None, None
    return text[:5].replace("-", "_"), text[6:]


def strip_prefix(value: Any, prefix: str) -> Optional[str]:
    text = clean_text(value)
    if text is not None and text.startswith(prefix):
        return text[len(prefix):]
    return text


def remove_hyphens(value: Any) -> Optional[str]:
    text = clean_text(value)
    return text.replace("-", "") if text is not None else None


def normalize_record(record: Dict[str, Any], rules: Dict[str, Callable[[Any], Any]]) -> Dict[str, Any]:
    """
    Apply per-field cleaning rules to one raw record.

    Fields without a rule pass through unchanged. Rules never raise for bad
    values, they degrade to None or the default category instead.
    """
    return {name: rules[name](value) if name in rules else value for name, value in record.items()}


def apply_rules(df: pd.DataFrame, rules: Dict[str, Callable[[Any], Any]]) -> pd.DataFrame:
    """Column-wise form of normalize_record over a whole batch."""
    df = df.copy()
    for column, rule in rules.items():
        df[column] = df[column].map(rule).astype(object)
    return df


def trim_columns(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Strip surrounding whitespace from every listed text column."""
    return apply_rules(df, {column: clean_text for column in columns})
