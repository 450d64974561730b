"""Run logging and seed derivation."""
from typing import Any, Dict, Optional

import json
import logging
from datetime import datetime
from pathlib import Path

import numpy as np

from fairscore.utils.logging import LOG_FORMAT


def derive_seed(seed: int, *keys: int) -> int:
    """Deterministic sub-seed for one component of a run."""
    seq = np.random.SeedSequence(seed, spawn_key=tuple(int(k) for k in keys))
    return int(seq.generate_state(1)[0])


class Logger:
    """Logger for analysis runs.

    Without a ``logdir`` messages only go to the console and metrics are
    dropped; with one, ``console.txt``, ``metrics.jsonl`` and ``config.json``
    are written there.
    """

    def __init__(self, logdir: Optional[str] = None, name: str = "analysis"):
        self.logdir = Path(logdir) if logdir else None
        self.name = name

        self.logger = logging.getLogger(f"fairscore.run.{name}")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()
        formatter = logging.Formatter(LOG_FORMAT)

        # Console handler
        ch = logging.StreamHandler()
        ch.setLevel(logging.INFO)
        ch.setFormatter(formatter)
        self.logger.addHandler(ch)

        self.metrics_file = None
        if self.logdir is not None:
            self.logdir.mkdir(parents=True, exist_ok=True)
            self.metrics_file = self.logdir / "metrics.jsonl"
            fh = logging.FileHandler(self.logdir / "console.txt")
            fh.setLevel(logging.INFO)
            fh.setFormatter(formatter)
            self.logger.addHandler(fh)

    def info(self, message: str) -> None:
        """Log info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def log_metrics(self, metrics: Dict[str, Any], step: str) -> None:
        """Append one metrics record to the JSONL file."""
        if self.metrics_file is None:
            return
        record = {
            "step": step,
            "timestamp": datetime.now().isoformat(),
            **metrics
        }
        with open(self.metrics_file, "a") as f:
            f.write(json.dumps(record, default=str) + "\n")

    def log_config(self, config: Dict[str, Any]) -> None:
        """Save configuration."""
        if self.logdir is None:
            return
        with open(self.logdir / "config.json", "w") as f:
            json.dump(config, f, indent=2, default=str)

    def close(self) -> None:
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()
