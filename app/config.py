"""Application configuration via environment variables."""

import logging
import os
import tempfile
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    static_dir: Optional[str] = None  # upload page, mounted at / when present

    # Ephemeral storage
    storage_dir: str = os.path.join(tempfile.gettempdir(), "pdf_optimizer")
    max_upload_bytes: int = 200 * 1024 * 1024

    # Job lifecycle
    idle_ttl_seconds: float = 300.0
    shutdown_grace_seconds: float = 5.0
    record_retention_seconds: float = 3600.0  # 0 disables the sweep
    sweep_interval_seconds: float = 60.0

    # Transformation pipeline
    shrink_command: str = "/opt/shrinkpdf/shrinkpdf.sh"
    shrink_args: List[str] = ["-r", "400", "-t", "1.25", "-g"]
    optimizer_command: str = "/usr/local/bin/pdfsizeopt"  # "" skips the second pass
    optimizer_args: List[str] = ["--use-pngout=no"]
    transform_timeout_seconds: float = 900.0

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()


def get_logger(name: str = "app") -> logging.Logger:
    """Return a logger under the ``app`` hierarchy.

    The ``app`` logger gets a single stream handler the first time this is
    called; child loggers propagate to it.
    """
    root = logging.getLogger("app")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        root.addHandler(handler)
        root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
        root.propagate = False
    return logging.getLogger(name)
