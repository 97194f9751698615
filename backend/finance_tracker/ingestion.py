"""
Bulk ingestion of client-submitted transactions.

Each record is an independent unit of work: it is decoded, re-validated,
then persisted on its own, and its outcome is recorded by its index in the
request. A failed record never stops the others and nothing is rolled back,
so partial success is a normal result. Only StoreUnavailableError, which
means the store as a whole is gone, escapes ingest().
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, List, Optional, Sequence, Union

from pydantic import ValidationError

from .errors import PersistenceTimeoutError, RowValidationError, StoreUnavailableError
from .models import (
    BulkErrorEntry,
    BulkResults,
    BulkSuccessEntry,
    BulkUploadResponse,
    NormalizedTransaction,
    StoredTransaction,
    WireTransaction,
)
from .row_validator import NON_NEGATIVE_AMOUNT, AmountPolicy, validate_payload
from .store import TransactionStore
from .tracing import DISABLED_TRACER, IngestionTracer

logger = logging.getLogger(__name__)

RecordOutcome = Union[BulkSuccessEntry, BulkErrorEntry]


def _decode_problem(exc: ValidationError) -> str:
    problems = [
        f"{'.'.join(str(part) for part in error['loc']) or 'transaction'}: {error['msg']}"
        for error in exc.errors()
    ]
    return "Invalid transaction: " + "; ".join(problems)


class BulkIngestionService:
    """
    Validates and persists a batch of records independently.

    With persist_timeout set, an insert that overruns is reported as failed
    but its worker is not stopped. The store may still complete that insert
    afterwards; when it does, a warning naming the record index and the
    stored id is logged so the late write can be reconciled before the
    record is resubmitted.
    """

    def __init__(
        self,
        store: TransactionStore,
        max_workers: int = 1,
        persist_timeout: Optional[float] = None,
        amount_policy: AmountPolicy = NON_NEGATIVE_AMOUNT,
        tracer: Optional[IngestionTracer] = None,
    ):
        """
        Args:
            store: Where accepted records are written
            max_workers: Records processed at once; 1 keeps processing
                strictly sequential
            persist_timeout: Seconds allowed for one insert, or None to wait
            amount_policy: Amount rule applied on re-validation
            tracer: Optional Langfuse tracer
        """
        if max_workers < 1:
            raise ValueError("max_workers must be a positive integer")
        self.store = store
        self.max_workers = max_workers
        self.persist_timeout = persist_timeout
        self.amount_policy = amount_policy
        self.tracer = tracer or DISABLED_TRACER

    def ingest(self, records: Sequence[Any]) -> BulkUploadResponse:
        """
        Process every record and report per-index outcomes.

        Args:
            records: WireTransaction instances or raw decoded JSON values

        Returns:
            BulkUploadResponse with successes and errors ordered by index

        Raises:
            StoreUnavailableError: if the store cannot be written at all
        """
        logger.info("Bulk ingestion started: %d transactions", len(records))
        trace = self.tracer.start_trace(
            "bulk_ingestion", metadata={"records": len(records)}
        )
        try:
            outcomes = self._run(records)
            results = BulkResults()
            for outcome in outcomes:
                if isinstance(outcome, BulkSuccessEntry):
                    results.success.append(outcome)
                else:
                    results.errors.append(outcome)
            self.tracer.add_span(
                trace,
                "bulk_ingestion_summary",
                output_data={
                    "success": len(results.success),
                    "errors": len(results.errors),
                },
            )
        finally:
            self.tracer.end_trace(trace)

        message = (
            f"Bulk upload completed: {len(results.success)} successful, "
            f"{len(results.errors)} errors"
        )
        logger.info(message)
        return BulkUploadResponse(
            message=message,
            total_count=len(records),
            success_count=len(results.success),
            error_count=len(results.errors),
            results=results,
        )

    def _run(self, records: Sequence[Any]) -> List[RecordOutcome]:
        indexes = range(len(records))
        if self.max_workers == 1:
            return [self.process_record(i, r) for i, r in zip(indexes, records)]

        # Executor.map yields results in submission order
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            return list(pool.map(self.process_record, indexes, records))

    def process_record(self, index: int, record: Any) -> RecordOutcome:
        """Decode, validate and persist a single record, capturing any failure."""
        if isinstance(record, WireTransaction):
            wire, data = record, record.model_dump()
        else:
            data = record
            try:
                wire = WireTransaction.model_validate(record)
            except ValidationError as exc:
                return self._error(index, _decode_problem(exc), data)

        try:
            transaction = validate_payload(wire, self.amount_policy)
        except RowValidationError as exc:
            return self._error(index, exc.message, data)

        try:
            stored = self._insert(index, transaction)
        except StoreUnavailableError:
            raise
        except Exception as exc:
            return self._error(index, str(exc) or "Unknown error", data)

        logger.debug("Transaction %d saved successfully: %s", index + 1, stored.id)
        return BulkSuccessEntry(index=index, transaction=stored)

    def _insert(self, index: int, transaction: NormalizedTransaction) -> StoredTransaction:
        if self.persist_timeout is None:
            return self.store.insert(transaction)

        # The worker is abandoned, not joined, when the insert stalls
        timer = ThreadPoolExecutor(max_workers=1)
        try:
            future = timer.submit(self.store.insert, transaction)
            try:
                return future.result(timeout=self.persist_timeout)
            except FutureTimeoutError:
                future.add_done_callback(lambda f: _report_late_insert(index, f))
                raise PersistenceTimeoutError(
                    f"Persistence timed out after {self.persist_timeout:g}s"
                )
        finally:
            timer.shutdown(wait=False)

    def _error(self, index: int, message: str, data: Any) -> BulkErrorEntry:
        logger.warning("Error processing transaction %d: %s", index + 1, message)
        return BulkErrorEntry(index=index, error=message, data=data)


def _report_late_insert(index: int, future: Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    logger.warning(
        "Transaction %d was stored after timing out: %s", index + 1, future.result().id
    )
