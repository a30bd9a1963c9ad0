import logging

import pandas as pd

logger = logging.getLogger("SilverLayer")


def latest_per_key(df: pd.DataFrame, key: str, order_by: str) -> pd.DataFrame:
    """
    Keep one row per natural key: the one with the latest ``order_by`` value.

    Rows with a null key are dropped before ranking. The sort is stable, so
    when two rows share the latest timestamp the one that came first in the
    input survives. Rows with a null timestamp rank after every dated row.

    Args:
        df: Raw rows, possibly several per key
        key: Natural key column
        order_by: Column ranked descending (a creation timestamp)

    Returns:
        Surviving rows, in their original input order
    """
    keyed = df[df[key].notna()]
    null_keys = len(df) - len(keyed)

    ranking = pd.to_datetime(keyed[order_by], errors="coerce")
    order = ranking.sort_values(ascending=False, kind="mergesort", na_position="last").index
    ranked = keyed.loc[order]

    survivors = ranked[~ranked[key].duplicated(keep="first")].sort_index()

    duplicates = len(keyed) - len(survivors)
    if null_keys or duplicates:
        logger.info(
            f"Deduplicated on {key}: dropped {duplicates} older duplicates and {null_keys} rows with null keys"
        )
    return survivors
