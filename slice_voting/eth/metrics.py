"""
Non-behavioral ledger client metrics.

Counts and latencies of RPC traffic only. Never keyed by voter, dispute or
vote value.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator


@dataclass
class Metrics:
    counters: Dict[str, int] = field(default_factory=dict)
    gauges: Dict[str, float] = field(default_factory=dict)

    def inc(self, name: str, by: int = 1) -> None:
        self.counters[name] = self.counters.get(name, 0) + by

    def observe(self, name: str, value: float) -> None:
        self.gauges[name] = float(value)

    @contextmanager
    def timed(self, name: str) -> Iterator[None]:
        """Record ``<name>_ms`` on success, bump ``<name>_errors_total`` on failure."""
        t0 = time.monotonic()
        try:
            yield
        except BaseException:
            self.inc(f"{name}_errors_total")
            raise
        self.observe(f"{name}_ms", (time.monotonic() - t0) * 1000.0)

    def snapshot(self) -> dict:
        return {
            "counters": dict(self.counters),
            "gauges": dict(self.gauges),
        }
