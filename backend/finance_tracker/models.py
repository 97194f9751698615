# Data models for the finance tracker
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DESCRIPTION_MAX_LENGTH = 200
TRANSACTION_TYPES = ("income", "expense")

TransactionType = Literal["income", "expense"]
WireScalar = Union[str, int, float, None]


class ApiModel(BaseModel):
    """Base for models that travel over the wire with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CandidateRecord(ApiModel):
    """Raw fields of one spreadsheet row, before validation."""

    type: str
    amount: float
    category: str
    date: str
    description: str


class NormalizedTransaction(ApiModel):
    type: TransactionType
    amount: float
    category: str
    date: datetime
    description: str

    def as_candidate(self) -> CandidateRecord:
        return CandidateRecord(
            type=self.type,
            amount=self.amount,
            category=self.category,
            date=self.date.isoformat(),
            description=self.description,
        )

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready payload for the transaction endpoints."""
        return self.model_dump(mode="json", by_alias=True)


class StoredTransaction(NormalizedTransaction):
    id: str
    created_at: datetime
    updated_at: datetime


class RowError(ApiModel):
    """A rejected row with enough context to find it in the source file."""

    model_config = ConfigDict(frozen=True)

    row_position: int
    message: str
    original_data: CandidateRecord
    source: Optional[str] = None


class BatchResult(ApiModel):
    """Accepted and rejected rows of one processed upload batch."""

    model_config = ConfigDict(frozen=True)

    accepted: Tuple[NormalizedTransaction, ...] = ()
    rejected: Tuple[RowError, ...] = ()


class BatchPreviewResponse(ApiModel):
    accepted_count: int
    rejected_count: int
    accepted: List[NormalizedTransaction]
    rejected: List[RowError]

    @classmethod
    def from_batch(cls, batch: BatchResult) -> "BatchPreviewResponse":
        return cls(
            accepted_count=len(batch.accepted),
            rejected_count=len(batch.rejected),
            accepted=list(batch.accepted),
            rejected=list(batch.rejected),
        )


class WireTransaction(BaseModel):
    """One transaction as received from a client. Values are not trusted."""

    model_config = ConfigDict(extra="allow")

    type: WireScalar = None
    amount: WireScalar = None
    category: WireScalar = None
    date: WireScalar = None
    description: WireScalar = None


class BulkTransactionRequest(BaseModel):
    # Elements are decoded one at a time so a bad one fails only itself
    transactions: Optional[List[Any]] = None


class BulkSuccessEntry(ApiModel):
    index: int
    transaction: StoredTransaction


class BulkErrorEntry(ApiModel):
    index: int
    error: str
    data: Any


class BulkResults(ApiModel):
    success: List[BulkSuccessEntry] = []
    errors: List[BulkErrorEntry] = []


class BulkUploadResponse(ApiModel):
    message: str
    total_count: int
    success_count: int
    error_count: int
    results: BulkResults


class TransactionStats(ApiModel):
    total_balance: str
    monthly_income: str
    monthly_expenses: str
    savings_rate: str


class MonthlyOverview(ApiModel):
    month: str
    income: float
    expenses: float


class CategoryBreakdown(ApiModel):
    name: str
    value: float
    color: str
