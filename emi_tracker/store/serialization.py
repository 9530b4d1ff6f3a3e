"""Conversion between loan models and stored documents.

Documents use camelCase field names (``emiAmount``,
``currentEMI`` and so on). Reading is lenient: malformed or missing values
are replaced by defaults and logged, so one bad record never prevents the
rest of the collection from loading.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from emi_tracker.exceptions import ValidationError
from emi_tracker.models.enums import LoanStatus, TrackingMode
from emi_tracker.models.loan import DateDrivenLoan, Loan, ManuallyTrackedLoan, NewLoan
from emi_tracker.schedule.calendar import to_date, to_datetime

logger = logging.getLogger(__name__)


def serialize_value(value: Any) -> Any:
    """Serialize a value for JSON output."""
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, date):
        return value.isoformat()
    elif isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [serialize_value(v) for v in value]
    return value


def new_loan_document(new_loan: NewLoan, created_at: datetime) -> dict[str, Any]:
    """Build the stored document for a newly recorded loan."""
    doc = {
        "name": new_loan.name,
        "totalAmount": serialize_value(new_loan.total_amount),
        "emiAmount": serialize_value(new_loan.installment_amount),
        "startDate": serialize_value(new_loan.start_date),
        "tenure": new_loan.tenure,
        "interestRate": serialize_value(new_loan.interest_rate),
        "status": LoanStatus.ACTIVE.value,
        "lastUpdated": created_at.isoformat(),
    }
    if new_loan.tracking is TrackingMode.MANUAL:
        doc["currentEMI"] = 0
    return doc


def loan_to_document(loan: Loan) -> dict[str, Any]:
    """Convert a loan to its stored document (without the id)."""
    doc: dict[str, Any] = {
        "name": loan.name,
        "totalAmount": serialize_value(loan.total_amount),
        "emiAmount": serialize_value(loan.installment_amount),
        "startDate": serialize_value(loan.start_date),
        "tenure": loan.tenure,
        "interestRate": serialize_value(loan.interest_rate),
    }
    if loan.status is not None:
        doc["status"] = loan.status.value
    if loan.updated_at is not None:
        doc["lastUpdated"] = loan.updated_at.isoformat()

    if loan.tracking is TrackingMode.MANUAL:
        doc["currentEMI"] = loan.installment_count
        if loan.last_payment_at is not None:
            doc["lastPaymentDate"] = loan.last_payment_at.isoformat()
    return doc


def loan_from_document(
    loan_id: str,
    doc: dict[str, Any],
    today: date | None = None,
) -> Loan:
    """Build a loan from a stored document, sanitising bad fields.

    Parameters
    ----------
    loan_id : str
        Store-assigned identifier.
    doc : dict[str, Any]
        Stored document.
    today : date | None
        Substitute for a missing start date (default: ``date.today()``).

    Returns
    -------
    Loan
        ``ManuallyTrackedLoan`` if the document has a ``currentEMI`` counter,
        otherwise ``DateDrivenLoan``. An unparseable ``startDate`` is kept
        as-is for the schedule engine to reject.
    """
    start_date = _start_date(loan_id, doc.get("startDate"), today)

    terms = dict(
        loan_id=loan_id,
        name=str(doc.get("name") or ""),
        total_amount=_decimal(loan_id, "totalAmount", doc.get("totalAmount")),
        installment_amount=_decimal(loan_id, "emiAmount", doc.get("emiAmount")),
        start_date=start_date,
        tenure=_integer(loan_id, "tenure", doc.get("tenure")),
        interest_rate=_decimal(loan_id, "interestRate", doc.get("interestRate")),
        status=_status(loan_id, doc.get("status")),
        updated_at=_timestamp(loan_id, "lastUpdated", doc.get("lastUpdated")),
    )

    if doc.get("currentEMI") is not None:
        return ManuallyTrackedLoan(
            **terms,
            installment_count=_integer(loan_id, "currentEMI", doc.get("currentEMI")),
            last_payment_at=_timestamp(loan_id, "lastPaymentDate", doc.get("lastPaymentDate")),
        )
    return DateDrivenLoan(**terms)


def _start_date(loan_id: str, value: Any, today: date | None) -> date | str | None:
    if value is None or value == "":
        fallback = today or date.today()
        logger.warning("Loan %s has no startDate, using %s", loan_id, fallback.isoformat())
        return fallback
    try:
        return to_date(value)
    except ValidationError:
        logger.warning("Loan %s has malformed startDate %r", loan_id, value)
        return value


def _decimal(loan_id: str, field: str, value: Any) -> Decimal:
    if value is None or value == "" or isinstance(value, bool):
        if value is not None:
            logger.warning("Loan %s has malformed %s %r, using 0", loan_id, field, value)
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        logger.warning("Loan %s has malformed %s %r, using 0", loan_id, field, value)
        return Decimal("0")
    if not result.is_finite():
        logger.warning("Loan %s has non-finite %s %r, using 0", loan_id, field, value)
        return Decimal("0")
    return result


def _integer(loan_id: str, field: str, value: Any) -> int:
    return int(_decimal(loan_id, field, value))


def _status(loan_id: str, value: Any) -> LoanStatus | None:
    if value is None:
        return None
    try:
        return LoanStatus(value)
    except ValueError:
        logger.warning("Loan %s has unknown status %r, ignoring", loan_id, value)
        return None


def _timestamp(loan_id: str, field: str, value: Any) -> datetime | None:
    result = to_datetime(value)
    if result is None and value not in (None, ""):
        logger.warning("Loan %s has malformed %s %r, ignoring", loan_id, field, value)
    return result
