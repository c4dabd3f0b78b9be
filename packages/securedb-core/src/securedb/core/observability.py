from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from importlib import import_module
from typing import Any

from securedb.core.runtime.settings import Settings

log = logging.getLogger("securedb.core.observability")


class MetricsSink:
    """Optional metrics sink.

    Users can provide a module via SECUREDB_METRICS_MODULE exposing METRICS: MetricsSink.
    """

    def on_connect_start(self, *, driver: str, host: str) -> None:  # pragma: no cover
        return None

    def on_connect_end(self, *, driver: str, host: str, status: str, errno: int, tls: bool, duration_ms: int) -> None:  # pragma: no cover
        return None


def load_metrics_sink(settings: Settings) -> MetricsSink:
    mod = settings.metrics_module
    if not mod:
        return MetricsSink()
    m = import_module(mod)
    sink = getattr(m, "METRICS", None)
    if sink is None:
        raise AttributeError(f"{mod} must expose METRICS")
    return sink


def _now_ms() -> int:
    return int(time.time() * 1000)


def _dur_ms(t0: float, t1: float) -> int:
    return int((t1 - t0) * 1000)


def log_event(logger: logging.Logger, *, settings: Settings, level: int, event: str, **fields: Any) -> None:
    """Emit an event log.

    - text format: one-liner `event key=value ...`
    - json format: one JSON object per line
    """
    if settings.log_format.lower() == "json":
        payload = {"ts_ms": _now_ms(), "event": event, **fields}
        logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
        return

    parts = [event]
    for k, v in fields.items():
        parts.append(f"{k}={v}")
    logger.log(level, " ".join(parts))


@dataclass
class ConnectSummary:
    driver: str
    host: str
    status: str
    errno: int
    tls: bool
    duration_ms: int

    def as_dict(self) -> dict:
        return {
            "driver": self.driver,
            "host": self.host,
            "status": self.status,
            "errno": self.errno,
            "tls": self.tls,
            "duration_ms": self.duration_ms,
        }


class ConnectObserver:
    """Times one connect attempt and emits connect_start / connect_end."""

    def __init__(self, *, settings: Settings, logger: logging.Logger, driver: str, host: str):
        self.settings = settings
        self.logger = logger
        self.driver = driver
        self.host = host
        self._t0: float | None = None
        self.metrics = load_metrics_sink(settings)

    def start(self, **fields: Any) -> None:
        self._t0 = time.perf_counter()
        log_event(self.logger, settings=self.settings, level=logging.DEBUG, event="connect_start", driver=self.driver, host=self.host, **fields)
        try:
            self.metrics.on_connect_start(driver=self.driver, host=self.host)
        except Exception:
            # Metrics must never break a connect.
            log.warning("metrics on_connect_start failed", exc_info=True)

    def end(self, *, status: str, errno: int = 0, tls: bool = False) -> ConnectSummary:
        dur = _dur_ms(self._t0, time.perf_counter()) if self._t0 is not None else 0
        summary = ConnectSummary(driver=self.driver, host=self.host, status=status, errno=errno, tls=tls, duration_ms=dur)
        level = logging.INFO if status == "SUCCESS" else logging.ERROR
        log_event(self.logger, settings=self.settings, level=level, event="connect_end", **summary.as_dict())
        try:
            self.metrics.on_connect_end(**summary.as_dict())
        except Exception:
            log.warning("metrics on_connect_end failed", exc_info=True)
        return summary
