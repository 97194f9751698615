"""
Upload client for the finance tracker API.

Runs the batch processor over local files and sends the accepted rows to the
bulk endpoint. Network failures never raise out of submit_bulk(); every
record in the failed request is reported as failed instead.
"""

import logging
from typing import List, Optional, Sequence

import httpx

from .batch_processor import BatchProcessor, ProgressCallback, SourceFile
from .config import Settings
from .errors import TransportError
from .models import (
    BatchResult,
    BulkErrorEntry,
    BulkResults,
    BulkUploadResponse,
    NormalizedTransaction,
    StoredTransaction,
)
from .tracing import IngestionTracer

logger = logging.getLogger(__name__)

REQUEST_FAILED = "Request failed"


class TransactionApiClient:
    """Client side of the bulk ingestion flow."""

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.Client] = None,
        processor: Optional[BatchProcessor] = None,
    ):
        """
        Args:
            settings: Supplies the API base URL, chunk size and timeout
            http_client: Client to send requests with; one is created (and
                closed by close()) when omitted
            processor: Batch processor for local files
        """
        self.settings = settings
        self.base_url = settings.api_base_url.rstrip("/")
        self.chunk_size = settings.bulk_chunk_size
        self.processor = processor or BatchProcessor(
            tracer=IngestionTracer.from_settings(settings)
        )
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=settings.request_timeout_seconds)

    def __enter__(self) -> "TransactionApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def process_files(
        self,
        files: Sequence[SourceFile],
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Parse and validate local files. Raises ParseError like the processor."""
        return self.processor.process(files, on_progress=on_progress)

    def submit_bulk(self, transactions: Sequence[NormalizedTransaction]) -> BulkUploadResponse:
        """
        Send transactions to the bulk endpoint in chunks.

        Indices in the returned response refer to positions in
        `transactions`, whatever chunk they were sent in.
        """
        results = BulkResults()
        for offset in range(0, len(transactions), self.chunk_size):
            chunk = transactions[offset:offset + self.chunk_size]
            try:
                response = self._post_chunk(chunk)
            except TransportError as exc:
                logger.warning(
                    "Bulk request for records %d-%d failed: %s",
                    offset,
                    offset + len(chunk) - 1,
                    exc,
                )
                results.errors.extend(
                    BulkErrorEntry(index=offset + i, error=REQUEST_FAILED, data=t.to_wire())
                    for i, t in enumerate(chunk)
                )
                continue

            results.success.extend(
                entry.model_copy(update={"index": entry.index + offset})
                for entry in response.results.success
            )
            results.errors.extend(
                entry.model_copy(update={"index": entry.index + offset})
                for entry in response.results.errors
            )

        results.success.sort(key=lambda entry: entry.index)
        results.errors.sort(key=lambda entry: entry.index)
        success_count = len(results.success)
        error_count = len(results.errors)
        return BulkUploadResponse(
            message=f"{success_count} succeeded, {error_count} failed",
            total_count=len(transactions),
            success_count=success_count,
            error_count=error_count,
            results=results,
        )

    def list_transactions(self) -> List[StoredTransaction]:
        response = self._http.get(f"{self.base_url}/transactions")
        response.raise_for_status()
        return [StoredTransaction.model_validate(item) for item in response.json()]

    def _post_chunk(self, chunk: Sequence[NormalizedTransaction]) -> BulkUploadResponse:
        try:
            response = self._http.post(
                f"{self.base_url}/transactions/bulk",
                json={"transactions": [t.to_wire() for t in chunk]},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        try:
            return BulkUploadResponse.model_validate(response.json())
        except ValueError as exc:
            raise TransportError(f"Unexpected response from bulk endpoint: {exc}") from exc
