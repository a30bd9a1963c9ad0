import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DB_PATH = "database/warehouse.db"
DEFAULT_DATA_DIR = "datasets"
DEFAULT_DELIMITER = ","
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"


@dataclass
class PipelineConfig:
    """Runtime settings for a warehouse load."""

    db_path: str = DEFAULT_DB_PATH
    data_dir: str = DEFAULT_DATA_DIR
    delimiter: str = DEFAULT_DELIMITER
    log_dir: Optional[str] = DEFAULT_LOG_DIR
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "PipelineConfig":
        """
        Build a config from environment variables, loading a .env file first.

        Variables already set in the environment win over the .env file.
        """
        load_dotenv(env_file)
        return cls(
            db_path=os.environ.get("WAREHOUSE_DB_PATH", DEFAULT_DB_PATH),
            data_dir=os.environ.get("WAREHOUSE_DATA_DIR", DEFAULT_DATA_DIR),
            delimiter=os.environ.get("WAREHOUSE_DELIMITER", DEFAULT_DELIMITER),
            log_dir=os.environ.get("WAREHOUSE_LOG_DIR", DEFAULT_LOG_DIR) or None,
            log_level=os.environ.get("WAREHOUSE_LOG_LEVEL", DEFAULT_LOG_LEVEL),
        )

    def override(self, **kwargs) -> "PipelineConfig":
        """Return a copy with every non-None keyword applied."""
        values = {**self.__dict__, **{k: v for k, v in kwargs.items() if v is not None}}
        return PipelineConfig(**values)
