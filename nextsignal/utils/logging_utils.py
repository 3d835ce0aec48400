"""Logging utilities for NextSignal.

Loads the YAML logging configuration and provides run-scoped loggers that
prefix every line with the fusion run id. All loggers live under 'nextsignal'.
"""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, MutableMapping, Optional

import yaml

_DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """Apply config/logging.yaml, or basicConfig when the file is missing.

    Args:
        config_path: Path to the YAML file (defaults to config/logging.yaml).
        log_level: Level applied to every configured logger, e.g. "DEBUG".
        log_file: Replacement filename for file handlers.
    """
    if config_path is None:
        config_path = str(Path(__file__).resolve().parents[2] / "config" / "logging.yaml")

    if not os.path.exists(config_path):
        logging.basicConfig(
            level=getattr(logging, (log_level or "INFO").upper(), logging.INFO),
            format=_DEFAULT_FORMAT,
        )
        return

    with open(config_path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    for handler_cfg in cfg.get("handlers", {}).values():
        if log_file and handler_cfg.get("class") == "logging.FileHandler":
            handler_cfg["filename"] = log_file

    if log_level:
        level = log_level.upper()
        for logger_cfg in cfg.get("loggers", {}).values():
            logger_cfg["level"] = level
        if "root" in cfg:
            cfg["root"]["level"] = level

    logging.config.dictConfig(cfg)


def get_logger(name: str) -> logging.Logger:
    """Return the logger ``nextsignal.<name>`` (names already namespaced pass through)."""
    if name == "nextsignal" or name.startswith("nextsignal."):
        return logging.getLogger(name)
    return logging.getLogger(f"nextsignal.{name}")


class RunContextAdapter(logging.LoggerAdapter):
    """Prefixes each message with the run id.

    Usage:
        log = get_run_logger("pipeline", run_id="20240115_120000_12.9716_77.5946")
        log.info("Fetched %d reports", 12)
        # [20240115_120000_12.9716_77.5946] Fetched 12 reports
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        run_id = self.extra.get("run_id", "unknown")
        return f"[{run_id}] {msg}", kwargs


def get_run_logger(name: str, run_id: str) -> RunContextAdapter:
    """Logger adapter for ``name`` bound to one fusion run."""
    return RunContextAdapter(get_logger(name), {"run_id": run_id})
