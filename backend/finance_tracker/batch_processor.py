"""
Batch processing of uploaded transaction files.

Every file in a batch must parse; a ParseError in any of them aborts the
whole batch. Rows are validated independently, so a bad row only ends up in
the rejected list.
"""

import logging
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional, Sequence, Union

from .models import BatchResult, NormalizedTransaction, RowError
from .row_parser import parse_file
from .row_validator import STRICT_POSITIVE_AMOUNT, AmountPolicy, validate_row
from .tracing import DISABLED_TRACER, IngestionTracer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class SourceFile(NamedTuple):
    name: str
    content: bytes

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "SourceFile":
        path = Path(path)
        return cls(name=path.name, content=path.read_bytes())


class BatchProcessor:
    """Parses and validates a sequence of uploaded files into a BatchResult."""

    def __init__(
        self,
        amount_policy: AmountPolicy = STRICT_POSITIVE_AMOUNT,
        tracer: Optional[IngestionTracer] = None,
    ):
        self.amount_policy = amount_policy
        self.tracer = tracer or DISABLED_TRACER

    def process(
        self,
        files: Sequence[SourceFile],
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """
        Process files in order and partition their rows.

        Args:
            files: Uploaded files, processed in the given order
            on_progress: Called with files-completed / files-total after
                each file finishes

        Returns:
            BatchResult with accepted and rejected rows in source order

        Raises:
            ParseError: if any file cannot be parsed; no result is produced
        """
        accepted: List[NormalizedTransaction] = []
        rejected: List[RowError] = []
        total = len(files)
        trace = self.tracer.start_trace(
            "batch_processing", metadata={"files": [f.name for f in files]}
        )

        try:
            for completed, source in enumerate(files, start=1):
                file_accepted, file_rejected = self._process_file(source)
                accepted.extend(file_accepted)
                rejected.extend(file_rejected)
                self.tracer.add_span(
                    trace,
                    "parse_file",
                    input_data=source.name,
                    output_data={
                        "accepted": len(file_accepted),
                        "rejected": len(file_rejected),
                    },
                )
                if on_progress is not None:
                    on_progress(completed / total)
        finally:
            self.tracer.end_trace(
                trace, output_data={"accepted": len(accepted), "rejected": len(rejected)}
            )

        logger.info(
            "Processed %d file(s): %d accepted, %d rejected",
            total,
            len(accepted),
            len(rejected),
        )
        return BatchResult(accepted=tuple(accepted), rejected=tuple(rejected))

    def _process_file(self, source: SourceFile):
        file_accepted: List[NormalizedTransaction] = []
        file_rejected: List[RowError] = []
        for parsed in parse_file(source.name, source.content):
            outcome = validate_row(
                parsed.record,
                parsed.index,
                amount_policy=self.amount_policy,
                source=source.name,
            )
            if isinstance(outcome, RowError):
                file_rejected.append(outcome)
            else:
                file_accepted.append(outcome)
        return file_accepted, file_rejected
