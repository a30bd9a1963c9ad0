import sqlite3
import csv
import os
import logging
from datetime import datetime
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from warehouse_pipeline.errors import LoadError, SourceReadError
from warehouse_pipeline.orchestrator import LayerLoader, LoadResult, TableStep
from warehouse_pipeline.sources import SOURCE_TABLES, SourceTable

logger = logging.getLogger("BronzeLayer")

PROVENANCE_COLUMNS = ("source_file", "ingestion_timestamp")
TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'
# Stands in for bytes that are not valid UTF-8
UNDECODABLE = "\ufffd"


def create_bronze_table(cursor, source: SourceTable) -> None:
    """
    Create a bronze table for a source extract if it doesn't already exist.
    """
    column_defs = ",\n            ".join(f"{name} {sqltype}" for name, sqltype in source.columns)
    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS {source.bronze_table} (
            {column_defs},
            source_file TEXT,
            ingestion_timestamp TEXT
        )
    """)


def create_bronze_tables(conn: sqlite3.Connection) -> None:
    cursor = conn.cursor()
    for source in SOURCE_TABLES:
        create_bronze_table(cursor, source)
    conn.commit()


def coerce_field(value: str, sqltype: str) -> Any:
    """
    Convert one raw text field to the value stored for its column type.

    Empty fields load as NULL. A field that does not parse as its type is
    nulled rather than failing the batch.
    """
    if value is None or value == "":
        return None

    if sqltype == "INTEGER":
        try:
            return int(value)
        except ValueError:
            pass
        try:
            number = float(value)
        except ValueError:
            logger.warning(f"Invalid integer value {value!r}, loading NULL")
            return None
        if number.is_integer():
            return int(number)
        logger.warning(f"Non-integral value {value!r} for INTEGER column, loading NULL")
        return None

    if sqltype in ("DATE", "DATETIME"):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            logger.warning(f"Invalid {sqltype.lower()} value {value!r}, loading NULL")
            return None
        if sqltype == "DATE":
            return parsed.strftime('%Y-%m-%d')
        return parsed.strftime(TIMESTAMP_FORMAT)

    return value


def read_source_rows(
    csv_file: str,
    columns: Sequence[Tuple[str, str]],
    delimiter: str = ",",
    max_rows: Optional[int] = None
) -> Iterator[List[Any]]:
    """
    Read a delimited extract, skipping its header row.

    Args:
        csv_file: Path to the delimited text file
        columns: (name, sqltype) pairs in file order
        delimiter: Field separator
        max_rows: Stop after this many data rows (None reads everything)

    Yields:
        One list of typed values per data row
    """
    if not os.path.exists(csv_file):
        raise SourceReadError(f"Source file not found: {csv_file}", state="extract")

    width = len(columns)
    try:
        with open(csv_file, newline='', encoding='utf-8', errors='replace') as f:
            reader = csv.reader(f, delimiter=delimiter)
            next(reader, None)

            row_count = 0
            for line_number, row in enumerate(reader, start=2):
                if max_rows is not None and row_count >= max_rows:
                    logger.info(f"Row cutoff of {max_rows} reached for {os.path.basename(csv_file)}")
                    break
                if not row:
                    continue

                if len(row) != width:
                    logger.warning(
                        f"{os.path.basename(csv_file)} line {line_number}: expected {width} fields, "
                        f"got {len(row)}"
                    )
                    row = (row + [""] * width)[:width]

                if any(UNDECODABLE in value for value in row):
                    logger.warning(
                        f"{os.path.basename(csv_file)} line {line_number}: undecodable bytes, "
                        f"loading NULL for the affected fields"
                    )
                    row = ["" if UNDECODABLE in value else value for value in row]

                yield [coerce_field(value, sqltype) for value, (_, sqltype) in zip(row, columns)]
                row_count += 1
    except (OSError, csv.Error) as e:
        raise SourceReadError(f"Error reading {csv_file}: {e}", state="extract") from e


def insert_bronze_rows(conn: sqlite3.Connection, source: SourceTable, rows: List[List[Any]], source_file: str) -> int:
    """
    Bulk insert typed rows into a bronze table with provenance columns.

    Returns:
        Number of rows inserted
    """
    names = source.column_names + list(PROVENANCE_COLUMNS)
    placeholders = ", ".join("?" for _ in names)
    ingestion_timestamp = datetime.now().strftime(TIMESTAMP_FORMAT)

    try:
        conn.executemany(
            f"INSERT INTO {source.bronze_table} ({', '.join(names)}) VALUES ({placeholders})",
            [row + [source_file, ingestion_timestamp] for row in rows]
        )
    except sqlite3.Error as e:
        raise LoadError(
            f"Insert into {source.bronze_table} rejected: {e}",
            code=getattr(e, "sqlite_errorcode", None),
            state="insert"
        ) from e
    conn.commit()
    return len(rows)


def build_bronze_steps(conn: sqlite3.Connection, data_dir: str, delimiter: str = ",") -> List[TableStep]:
    steps = []
    for source in SOURCE_TABLES:
        path = source.path(data_dir)

        def extract(source=source, path=path):
            return list(read_source_rows(path, source.columns, delimiter=delimiter, max_rows=source.max_rows))

        def insert(rows, source=source, path=path):
            return insert_bronze_rows(conn, source, rows, os.path.basename(path))

        steps.append(TableStep(
            table=source.bronze_table,
            extract=extract,
            insert=insert,
            group=source.system.upper(),
        ))
    return steps


def load_bronze(conn: sqlite3.Connection, data_dir: str, delimiter: str = ",") -> LoadResult:
    """
    Truncate and reload every bronze table from the source extracts.

    Args:
        conn: Open connection to the warehouse database
        data_dir: Directory holding the source_crm/ and source_erp/ folders
        delimiter: Field separator used by the extracts

    Returns:
        LoadResult with per-table durations, or the failure that aborted the load
    """
    create_bronze_tables(conn)
    return LayerLoader("bronze", conn, build_bronze_steps(conn, data_dir, delimiter)).run()
