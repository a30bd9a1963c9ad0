#!/usr/bin/env python3
"""
Warehouse Pipeline Runner

Loads the CRM and ERP extracts through the bronze, silver and gold layers of
the SQLite warehouse. Each layer is a full truncate-and-reload; a failure in
any table stops the run and is reported with its message, code and state.
"""

import os
import sys
import sqlite3
import argparse
import logging
from contextlib import closing
from typing import List, Optional

from warehouse_pipeline.bronze import load_bronze
from warehouse_pipeline.config import PipelineConfig
from warehouse_pipeline.gold import get_layer_stats, load_gold
from warehouse_pipeline.orchestrator import LoadResult
from warehouse_pipeline.quality import CheckResult, run_quality_checks
from warehouse_pipeline.silver import load_silver, table_exists
from utils.logger import configure_layer_loggers

LAYER_LOGGERS = ["ETL_Pipeline", "BronzeLayer", "SilverLayer", "GoldLayer", "QualityChecks"]
LAYERS = ["bronze", "silver", "gold"]

logger = logging.getLogger("ETL_Pipeline")


class WarehousePipeline:
    """Runs the medallion layers of the warehouse against one SQLite database."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self._ensure_db_directory()

    def _ensure_db_directory(self) -> None:
        directory = os.path.dirname(self.config.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.config.db_path)

    def load_bronze(self) -> LoadResult:
        with closing(self.connect()) as conn:
            return load_bronze(conn, self.config.data_dir, self.config.delimiter)

    def load_silver(self) -> LoadResult:
        with closing(self.connect()) as conn:
            return load_silver(conn)

    def load_gold(self) -> LoadResult:
        with closing(self.connect()) as conn:
            return load_gold(conn)

    def run_checks(self, include_gold: bool = True) -> List[CheckResult]:
        with closing(self.connect()) as conn:
            if not table_exists(conn, "silver_crm_cust_info"):
                logger.warning("Silver layer has not been loaded, skipping quality checks")
                return []
            return run_quality_checks(conn, include_gold=include_gold)

    def run(self, layers: Optional[List[str]] = None) -> List[LoadResult]:
        """
        Run the requested layers in bronze, silver, gold order.

        Stops at the first layer that fails; later layers are not attempted.

        Returns:
            LoadResult of every layer that ran
        """
        layers = layers or LAYERS
        results = []
        for layer in LAYERS:
            if layer not in layers:
                continue
            result = getattr(self, f"load_{layer}")()
            results.append(result)
            if not result.success:
                logger.error(f"Pipeline stopped: {layer} layer failed")
                break
        return results

    def layer_stats(self):
        with closing(self.connect()) as conn:
            return get_layer_stats(conn)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Run the CRM/ERP medallion warehouse load')
    parser.add_argument('--db', type=str, help='Path to SQLite database')
    parser.add_argument('--data-dir', type=str, help='Directory holding source_crm/ and source_erp/')
    parser.add_argument('--delimiter', type=str, help='Field delimiter of the source extracts')
    parser.add_argument('--layer', choices=LAYERS + ['all'], default='all', help='Layer to load')
    parser.add_argument('--check', action='store_true', help='Run quality checks after loading')
    parser.add_argument('--env-file', type=str, help='Path to a .env file')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point. Returns 0 on success, 1 on any failure."""
    args = parse_args(argv)
    config = PipelineConfig.from_env(args.env_file).override(
        db_path=args.db,
        data_dir=args.data_dir,
        delimiter=args.delimiter,
    )
    configure_layer_loggers(
        LAYER_LOGGERS, log_file="warehouse_pipeline.log", level=config.log_level, log_dir=config.log_dir
    )

    logger.info("Starting warehouse pipeline...")
    logger.info(f"Database: {config.db_path}, sources: {config.data_dir}")

    pipeline = WarehousePipeline(config)
    layers = LAYERS if args.layer == 'all' else [args.layer]
    results = pipeline.run(layers)
    success = all(result.success for result in results)

    if success and args.check:
        pipeline.run_checks(include_gold='gold' in layers)

    stats = pipeline.layer_stats()
    print("\nLayer statistics:")
    for table, count in stats.items():
        print(f"{table}: {count} records")

    if success:
        logger.info("Warehouse pipeline completed.")
        return 0
    logger.error("Warehouse pipeline failed.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
