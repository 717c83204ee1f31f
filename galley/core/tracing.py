"""OpenTelemetry spans around AI tasks, usage consumption and requests.

Tracing is off unless OTEL_ENABLED is set. When off, `start_span` yields
None and costs nothing. The "memory" exporter keeps finished spans so
tests can inspect them.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from galley.core.config import settings

SERVICE_NAME = "galley"


@dataclass
class _TracingState:
    tracer: Optional[trace.Tracer] = None
    exporter: Optional[SpanExporter] = None

    @property
    def active(self) -> bool:
        return self.tracer is not None


_state = _TracingState()


def _build_exporter(name: str) -> SpanExporter:
    if name == "memory":
        return InMemorySpanExporter()
    return ConsoleSpanExporter()


def setup_tracing(enabled: Optional[bool] = None, exporter_name: Optional[str] = None) -> None:
    """(Re)configure tracing; calling with enabled=False switches it off."""
    global _state
    if not (settings.OTEL_ENABLED if enabled is None else enabled):
        _state = _TracingState()
        return

    exporter = _build_exporter(exporter_name or settings.OTEL_EXPORTER)
    provider = TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    # private provider: the global one can only be installed once per process
    _state = _TracingState(tracer=provider.get_tracer(SERVICE_NAME), exporter=exporter)


@contextmanager
def start_span(name: str, attributes: Optional[Dict[str, object]] = None) -> Iterator[Optional[trace.Span]]:
    if not _state.active:
        yield None
        return
    clean = {k: v for k, v in (attributes or {}).items() if v is not None}
    with _state.tracer.start_as_current_span(name, attributes=clean) as span:
        yield span


def get_exported_spans():
    if isinstance(_state.exporter, InMemorySpanExporter):
        return _state.exporter.get_finished_spans()
    return ()


def reset_exported_spans() -> None:
    if isinstance(_state.exporter, InMemorySpanExporter):
        _state.exporter.clear()
