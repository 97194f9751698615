"""
Row validation for transaction records.

This module turns loosely-typed records into NormalizedTransaction objects.
Two entry points share the same field parsers:

- validate_row(): the upload-side check applied to every parsed spreadsheet
  row. It never raises; a failed row comes back as a RowError.
- validate_payload(): the server-side check applied to every record posted
  to the transaction endpoints. It raises RowValidationError.

The two sides deliberately use different amount policies (see
StrictPositiveAmount and NonNegativeAmount).
"""

import math
import re
from datetime import datetime, timezone
from typing import Optional, Union

from .errors import RowValidationError
from .models import (
    DESCRIPTION_MAX_LENGTH,
    TRANSACTION_TYPES,
    CandidateRecord,
    NormalizedTransaction,
    RowError,
    WireTransaction,
)

DATE_FORMATS = [
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%Y/%m/%d",
    "%m-%d-%Y",
    "%d-%m-%Y",
    "%m/%d/%y",  # 2-digit year: 1/1/22
    "%d/%m/%y",  # 2-digit year: 1/1/22 (European format)
    "%m-%d-%y",  # 2-digit year: 1-1-22
    "%d-%m-%y",  # 2-digit year: 1-1-22 (European format)
    "%d %b %Y",
    "%d %B %Y",
    "%b %d %Y",
    "%B %d %Y",
]

# Header row plus 1-based counting
ROW_POSITION_OFFSET = 2

_ORDINAL_SUFFIX = re.compile(r"(\d+)(st|nd|rd|th)\b")
# Currency symbols, thousands separators and whitespace around a number
_AMOUNT_DECORATION = re.compile(r"[\s,$£€]")


class AmountPolicy:
    """Decides whether a coerced amount is acceptable."""

    name = "amount"

    def accepts(self, amount: float) -> bool:
        raise NotImplementedError


class StrictPositiveAmount(AmountPolicy):
    """Amount must be finite and greater than zero. Used for uploads."""

    name = "strict-positive"

    def accepts(self, amount: float) -> bool:
        return math.isfinite(amount) and amount > 0


class NonNegativeAmount(AmountPolicy):
    """Amount must be finite and zero or more. Used by the API."""

    name = "non-negative"

    def accepts(self, amount: float) -> bool:
        return math.isfinite(amount) and amount >= 0


STRICT_POSITIVE_AMOUNT = StrictPositiveAmount()
NON_NEGATIVE_AMOUNT = NonNegativeAmount()


def parse_date(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a transaction date.

    Accepts ISO-8601 dates and datetimes (including a trailing 'Z') as well as
    the date layouts banks commonly export. Aware datetimes are converted to
    naive UTC so stored dates compare consistently.

    Args:
        value: Date text or an already parsed datetime

    Returns:
        Parsed datetime or None if the value is not a recognizable date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _to_naive_utc(value)

    candidate = str(value).strip()
    if not candidate:
        return None

    iso_candidate = candidate[:-1] + "+00:00" if candidate.endswith("Z") else candidate
    try:
        return _to_naive_utc(datetime.fromisoformat(iso_candidate))
    except ValueError:
        pass

    # Remove ordinal suffixes like '1st', '2nd'
    candidate = _ORDINAL_SUFFIX.sub(r"\1", candidate).replace(",", "")

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt)
        except ValueError:
            continue
    return None


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def coerce_amount(value: Union[str, int, float, None]) -> Optional[float]:
    """
    Coerce an amount cell or field to a float.

    Strings may carry currency symbols, thousands separators or accounting
    parentheses for negatives: "(1,200.50)" becomes -1200.5.

    Returns:
        The amount, or None when the value holds no number
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    value_str = str(value).strip()
    if not value_str:
        return None

    is_negative = False
    if value_str.startswith("(") and value_str.endswith(")"):
        is_negative = True
        value_str = value_str[1:-1]

    value_str = _AMOUNT_DECORATION.sub("", value_str)
    if not value_str:
        return None

    try:
        amount = float(value_str)
    except ValueError:
        return None
    if not math.isfinite(amount):
        return None
    if is_negative:
        amount = -abs(amount)
    return amount


def format_amount(amount: float) -> str:
    """Render an amount the way it was most likely typed: -5 not -5.0."""
    if math.isfinite(amount) and amount == int(amount):
        return str(int(amount))
    return str(amount)


def row_position(row_index: int) -> int:
    """1-based spreadsheet position of a 0-based data row."""
    return row_index + ROW_POSITION_OFFSET


def check_candidate(
    candidate: CandidateRecord,
    amount_policy: AmountPolicy = STRICT_POSITIVE_AMOUNT,
) -> NormalizedTransaction:
    """
    Run the upload checks on one candidate, in order.

    Raises:
        RowValidationError: on the first failed check
    """
    transaction_type = candidate.type.strip().lower()
    if transaction_type not in TRANSACTION_TYPES:
        raise RowValidationError(
            f"Invalid type: {candidate.type}. Must be 'income' or 'expense'"
        )

    if not amount_policy.accepts(candidate.amount):
        raise RowValidationError(
            f"Invalid amount: {format_amount(candidate.amount)}. "
            "Must be a positive number"
        )

    if not candidate.category.strip():
        raise RowValidationError("Category is required")

    parsed_date = parse_date(candidate.date)
    if parsed_date is None:
        raise RowValidationError(f"Invalid date format: {candidate.date}")

    if not candidate.description.strip():
        raise RowValidationError("Description is required")

    if len(candidate.description) > DESCRIPTION_MAX_LENGTH:
        raise RowValidationError(
            f"Description must not exceed {DESCRIPTION_MAX_LENGTH} characters"
        )

    return NormalizedTransaction(
        type=transaction_type,
        amount=candidate.amount,
        category=candidate.category,
        date=parsed_date,
        description=candidate.description,
    )


def validate_row(
    candidate: CandidateRecord,
    row_index: int,
    amount_policy: AmountPolicy = STRICT_POSITIVE_AMOUNT,
    source: Optional[str] = None,
) -> Union[NormalizedTransaction, RowError]:
    """
    Validate one parsed row.

    Args:
        candidate: Record produced by the row parser
        row_index: 0-based data row index (header excluded)
        amount_policy: Amount rule to apply
        source: Name of the file the row came from

    Returns:
        A NormalizedTransaction, or a RowError describing the first failure
    """
    try:
        return check_candidate(candidate, amount_policy)
    except RowValidationError as exc:
        return RowError(
            row_position=row_position(row_index),
            message=exc.message,
            original_data=candidate,
            source=source,
        )


def _is_present(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def validate_payload(
    record: WireTransaction,
    amount_policy: AmountPolicy = NON_NEGATIVE_AMOUNT,
) -> NormalizedTransaction:
    """
    Re-validate a record received over the API.

    Raises:
        RowValidationError: on the first failed check
    """
    fields = (record.type, record.amount, record.category, record.date, record.description)
    if not all(_is_present(value) for value in fields):
        raise RowValidationError("Missing required fields")

    transaction_type = str(record.type).strip().lower()
    if transaction_type not in TRANSACTION_TYPES:
        raise RowValidationError('Invalid type. Must be "income" or "expense"')

    amount = coerce_amount(record.amount)
    if amount is None or not amount_policy.accepts(amount):
        raise RowValidationError("Invalid amount. Must be a positive number")

    parsed_date = parse_date(str(record.date))
    if parsed_date is None:
        raise RowValidationError("Invalid date format")

    description = str(record.description)
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise RowValidationError(
            f"Description must not exceed {DESCRIPTION_MAX_LENGTH} characters"
        )

    return NormalizedTransaction(
        type=transaction_type,
        amount=amount,
        category=str(record.category),
        date=parsed_date,
        description=description,
    )
