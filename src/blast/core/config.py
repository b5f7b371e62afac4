"""Blast settings, read from BLAST_* environment variables and .env."""

from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class BlastSettings(BaseSettings):
    """Runtime settings for the CLI and the execution core."""

    # Execution
    workers: int = 8
    work_queue_size: int = 100
    validator_workers: int = 32

    # Pipeline layout
    pipeline_file_name: str = "pipeline.yml"
    tasks_directory_names: List[str] = Field(default_factory=lambda: ["tasks"])
    task_file_suffixes: List[str] = Field(default_factory=lambda: ["task.yml", "task.yaml"])

    # Project configuration
    config_file_name: str = ".blast.yml"
    home_dir: Path = Path("~/.blast").expanduser()

    log_level: str = "INFO"

    model_config = {"env_prefix": "BLAST_", "env_file": ".env"}


def get_settings() -> BlastSettings:
    return BlastSettings()
