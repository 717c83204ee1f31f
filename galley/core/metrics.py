"""In-process counters and gauges, exported in Prometheus text format at /metrics.

Values live only as long as the process; a scrape after restart starts from 0.
"""

from __future__ import annotations

import re
import threading
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

LabelValues = Tuple[str, ...]

_ID_SEGMENT = re.compile(r"^(\d+|[0-9a-fA-F-]{8,})$")


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


class _Series:
    kind = "untyped"

    def __init__(self, name: str, help_text: str = "", labels: Sequence[str] = ()):
        self.name = name
        self.help_text = help_text
        self.labels = tuple(labels)
        self._samples: Dict[LabelValues, float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Optional[Dict[str, str]]) -> LabelValues:
        given = labels or {}
        return tuple(str(given.get(label, "")) for label in self.labels)

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: float = 1.0) -> None:
        key = self._key(labels)
        with self._lock:
            self._samples[key] = self._samples.get(key, 0.0) + float(amount)

    def value(self, labels: Optional[Dict[str, str]] = None) -> float:
        with self._lock:
            return self._samples.get(self._key(labels), 0.0)

    def reset(self) -> None:
        with self._lock:
            self._samples.clear()

    def render(self) -> List[str]:
        lines = []
        if self.help_text:
            lines.append(f"# HELP {self.name} {self.help_text}")
        lines.append(f"# TYPE {self.name} {self.kind}")
        with self._lock:
            samples = sorted(self._samples.items())
        for values, number in samples:
            label_text = ""
            if self.labels:
                label_text = "{" + ",".join(f'{k}="{_escape(v)}"' for k, v in zip(self.labels, values)) + "}"
            lines.append(f"{self.name}{label_text} {number}")
        return lines


class Counter(_Series):
    kind = "counter"


class Gauge(_Series):
    kind = "gauge"

    def set(self, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        key = self._key(labels)
        with self._lock:
            self._samples[key] = float(value)


class MetricsRegistry:
    def __init__(self):
        self.counters: Dict[str, Counter] = {}
        self.gauges: Dict[str, Gauge] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, help_text: str = "", labels: Iterable[str] = ()) -> Counter:
        with self._lock:
            return self.counters.setdefault(name, Counter(name, help_text, tuple(labels)))

    def gauge(self, name: str, help_text: str = "", labels: Iterable[str] = ()) -> Gauge:
        with self._lock:
            return self.gauges.setdefault(name, Gauge(name, help_text, tuple(labels)))

    def export_prometheus(self) -> str:
        lines: List[str] = []
        for series in [*self.counters.values(), *self.gauges.values()]:
            lines.extend(series.render())
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        for series in [*self.counters.values(), *self.gauges.values()]:
            series.reset()


METRICS = MetricsRegistry()

http_requests_total = METRICS.counter(
    "http_requests_total", "HTTP requests by route and status", ["method", "path", "status"]
)
ai_task_total = METRICS.counter("ai_task_total", "AI task runs by outcome", ["task", "outcome"])
ai_fallback_total = METRICS.counter(
    "ai_fallback_total", "AI tasks answered from their fallback", ["task", "reason"]
)
usage_consumed_total = METRICS.counter("usage_consumed_total", "Metered units consumed", ["feature"])
usage_blocked_total = METRICS.counter("usage_blocked_total", "Requests refused by the usage gate", ["feature"])
signaling_connections_total = METRICS.counter("signaling_connections_total", "Signaling sockets accepted")
signaling_messages_relayed_total = METRICS.counter(
    "signaling_messages_relayed_total", "Signaling messages delivered to peers", ["type"]
)
automation_executions_total = METRICS.counter(
    "automation_executions_total", "Automation rule runs", ["action", "status"]
)
pos_requests_total = METRICS.counter("pos_requests_total", "Toast POS calls by action and outcome", ["action", "outcome"])

signaling_active_connections = METRICS.gauge("signaling_active_connections", "Sockets currently in a room")
signaling_active_rooms = METRICS.gauge("signaling_active_rooms", "Rooms with at least one participant")


def normalize_path(path: str) -> str:
    """Collapse numeric and uuid-like segments to :id to bound label cardinality."""
    segments = [":id" if _ID_SEGMENT.match(s) else s for s in path.split("/") if s]
    return "/" + "/".join(segments)
