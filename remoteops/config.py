"""Engine settings loaded from environment variables."""

from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is driven by ``REMOTEOPS_*`` environment variables."""

    # SSH connection
    ssh_username: str = "ubuntu"
    ssh_port: int = 22
    ssh_key_path: str = ""
    ssh_key_dir: str = ""
    ssh_connect_timeout: float = 10.0
    ssh_strict_host_keys: bool = False

    # Execution
    default_command_timeout: float = Field(default=60.0, gt=0)
    max_sessions_per_host: int = Field(default=4, ge=1)
    executor_workers: int = Field(default=16, ge=1)
    max_output_bytes: int = 1024 * 1024
    channel_poll_interval: float = 0.05

    # Remediation
    remediation_timeout: Optional[float] = Field(default=None, gt=0)
    lock_backoff_seconds: int = 30

    # Service stabilization
    poll_interval_seconds: float = Field(default=10.0, gt=0)
    poll_max_wait_seconds: float = Field(default=300.0, gt=0)
    aws_region: str = "us-east-1"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {
        "env_prefix": "REMOTEOPS_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Default instance – components accept an explicit Settings as well
settings = Settings()
