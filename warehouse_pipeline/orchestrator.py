"""
Layer load orchestration.

A layer load is an ordered list of table steps. Each step clears its target
table and then runs extract, transform and insert. Steps run one after
another on a single connection. The first failure stops the sequence and is
reported as a LoadFailure; tables loaded before it keep their new contents,
and the failing table may be left empty.
"""
import logging
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from warehouse_pipeline.errors import PipelineError, SchemaError

logger = logging.getLogger("ETL_Pipeline")

BANNER = "=" * 72
RULE = "-" * 72
GENERIC_ERROR_CODE = 1


def _identity(data: Any) -> Any:
    return data


@dataclass
class TableStep:
    """One truncate-and-reload unit for a single target table."""

    table: str
    extract: Callable[[], Any]
    insert: Callable[[Any], int]
    transform: Callable[[Any], Any] = _identity
    group: Optional[str] = None
    truncate: bool = True


@dataclass
class LoadFailure:
    message: str
    code: int
    state: str
    table: Optional[str] = None


@dataclass
class LoadResult:
    layer: str
    success: bool = True
    table_durations: Dict[str, float] = field(default_factory=dict)
    rows_loaded: Dict[str, int] = field(default_factory=dict)
    total_duration: float = 0.0
    failure: Optional[LoadFailure] = None


def truncate_table(conn: sqlite3.Connection, table: str) -> None:
    """Empty a table and commit, so the clear is visible even if the reload fails."""
    try:
        conn.execute(f"DELETE FROM {table}")
    except sqlite3.OperationalError as e:
        raise SchemaError(f"Cannot truncate {table}: {e}", state="truncate") from e
    conn.commit()


def failure_from_exception(exc: BaseException, phase: str, table: Optional[str]) -> LoadFailure:
    """Translate an exception into the message/code/state triple reported on abort."""
    state = phase
    if isinstance(exc, PipelineError):
        code = exc.code
        state = exc.state or phase
    else:
        # pandas wraps driver errors, the sqlite error is kept as the cause
        db_error = exc if isinstance(exc, sqlite3.Error) else exc.__cause__
        if isinstance(db_error, sqlite3.Error):
            code = getattr(db_error, "sqlite_errorcode", None) or GENERIC_ERROR_CODE
        else:
            code = GENERIC_ERROR_CODE
    return LoadFailure(message=str(exc), code=code, state=state, table=table)


class LayerLoader:
    """Runs a layer's table steps in order and reports timing or the failure."""

    def __init__(self, layer: str, conn: sqlite3.Connection, steps: List[TableStep]):
        self.layer = layer
        self.conn = conn
        self.steps = steps

    def run(self) -> LoadResult:
        result = LoadResult(layer=self.layer)
        batch_start = time.perf_counter()
        current_group = None
        step = None
        phase = "start"

        logger.info(BANNER)
        logger.info(f"Loading {self.layer.title()} Layer")
        logger.info(BANNER)

        try:
            for step in self.steps:
                if step.group and step.group != current_group:
                    current_group = step.group
                    logger.info(RULE)
                    logger.info(f"Loading {current_group} Tables")
                    logger.info(RULE)

                start = time.perf_counter()
                if step.truncate:
                    phase = "truncate"
                    logger.info(f">> Truncating Table: {step.table}")
                    truncate_table(self.conn, step.table)

                logger.info(f">> Inserting Data Into: {step.table}")
                phase = "extract"
                data = step.extract()
                phase = "transform"
                data = step.transform(data)
                phase = "insert"
                rows = step.insert(data)

                duration = time.perf_counter() - start
                result.table_durations[step.table] = duration
                result.rows_loaded[step.table] = rows
                logger.info(f">> Loaded {rows} rows")
                logger.info(f">> Load Duration: {duration:.2f} seconds")
                logger.info(">> --------------------------")

        except Exception as e:
            result.success = False
            result.failure = failure_from_exception(e, phase, step.table if step else None)
            result.total_duration = time.perf_counter() - batch_start
            self._report_failure(result.failure)
            return result

        result.total_duration = time.perf_counter() - batch_start
        logger.info(BANNER)
        logger.info(f"{self.layer.title()} Layer Load Completed")
        logger.info(f"<< Total Load Duration: {result.total_duration:.2f} seconds")
        logger.info(BANNER)
        return result

    def _report_failure(self, failure: LoadFailure) -> None:
        logger.error(BANNER)
        logger.error(f"ERROR OCCURRED DURING LOADING {self.layer.upper()} LAYER")
        logger.error(f"Table: {failure.table}")
        logger.error(f"Error Message: {failure.message}")
        logger.error(f"Error Number: {failure.code}")
        logger.error(f"Error State: {failure.state}")
        logger.error(BANNER)
