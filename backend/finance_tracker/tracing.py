"""
Langfuse tracing for ingestion runs.

Each batch-processing run and each bulk ingestion request becomes one trace,
with spans for the files parsed and the per-request outcome. Tracing is off
unless a Langfuse public key is configured, and a tracing failure never
interrupts ingestion.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from langfuse import Langfuse

logger = logging.getLogger(__name__)


@dataclass
class TraceHandle:
    """Lightweight wrapper for Langfuse trace context."""

    client: Any
    trace_context: Dict[str, str]
    root_span: Optional[object] = None

    def end(self):
        """End the root span if it is still open."""
        if self.root_span:
            try:
                self.root_span.end()
            except Exception:
                logger.warning("Failed to end root span", exc_info=True)
            finally:
                self.root_span = None


class IngestionTracer:
    """Wrapper around a Langfuse client for ingestion traces."""

    def __init__(
        self,
        public_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        host: str = "https://cloud.langfuse.com",
        debug: bool = False,
        client: Any = None,
    ):
        """
        Initialize the tracer.

        Args:
            public_key: Langfuse public key; tracing stays off without it
            secret_key: Langfuse secret key
            host: Langfuse host URL
            debug: Enable Langfuse SDK debug output
            client: Pre-built client, used instead of constructing one
        """
        self.client = client
        self.enabled = client is not None

        if client is None and public_key:
            try:
                self.client = Langfuse(
                    public_key=public_key,
                    secret_key=secret_key,
                    host=host,
                    debug=debug,
                )
                self.enabled = True
                logger.info("Langfuse tracing enabled (host: %s)", host)
            except Exception:
                logger.warning("Failed to initialize Langfuse", exc_info=True)
                self.client = None
                self.enabled = False

    @classmethod
    def from_settings(cls, settings) -> "IngestionTracer":
        return cls(
            public_key=settings.langfuse_public_key,
            secret_key=settings.langfuse_secret_key,
            host=settings.langfuse_host,
            debug=settings.langfuse_debug,
        )

    def is_enabled(self) -> bool:
        """Check if Langfuse tracing is enabled and available."""
        return self.enabled

    def start_trace(
        self,
        name: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[TraceHandle]:
        """
        Open a trace with a root span.

        Args:
            name: Name of the operation (e.g., "bulk_ingestion")
            metadata: Optional metadata dictionary

        Returns:
            TraceHandle, or None if tracing is disabled or failed
        """
        if not self.enabled or not self.client:
            return None

        try:
            trace_id = self.client.create_trace_id()
            trace_context = {"trace_id": trace_id}
            root_span = self.client.start_span(
                trace_context=trace_context,
                name=name,
                metadata=metadata or {},
            )
            logger.debug("Created trace %s (ID: %s)", name, trace_id)
            return TraceHandle(
                client=self.client, trace_context=trace_context, root_span=root_span
            )
        except Exception:
            logger.warning("Failed to create trace %s", name, exc_info=True)
            return None

    def add_span(
        self,
        trace: Optional[TraceHandle],
        name: str,
        input_data: Any = None,
        output_data: Any = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log a completed step to the trace.

        Args:
            trace: Handle from start_trace()
            name: Name of the span (e.g., "parse_file")
            input_data: Optional input payload
            output_data: Optional output payload
            metadata: Optional additional metadata
        """
        if not trace or not self.client:
            return

        try:
            span = self.client.start_span(
                trace_context=trace.trace_context,
                name=name,
                input=input_data,
                metadata=metadata or {},
            )
            if output_data is not None:
                span.update(output=output_data)
            span.end()
        except Exception:
            logger.warning("Failed to add span %s to trace", name, exc_info=True)

    def end_trace(self, trace: Optional[TraceHandle], output_data: Any = None) -> None:
        """Close the root span and flush pending events."""
        if not trace:
            return
        try:
            if output_data is not None and trace.root_span is not None:
                trace.root_span.update(output=output_data)
            trace.end()
            if self.client:
                self.client.flush()
        except Exception:
            logger.warning("Failed to end trace", exc_info=True)


DISABLED_TRACER = IngestionTracer()
