"""Custom exception hierarchy for emi-tracker."""


class EmiTrackerError(Exception):
    """Base exception for all emi-tracker errors."""


class ValidationError(EmiTrackerError):
    """Raised when a required loan field is missing or malformed."""


class PaymentError(EmiTrackerError):
    """Base for failures of the mark-installment-paid transition."""


class NotStartedError(PaymentError):
    """Raised when paying an installment before the loan has started."""


class AlreadyPaidError(PaymentError):
    """Raised when an installment was already paid in the same calendar month."""


class NotDueError(PaymentError):
    """Raised when the next installment does not fall in the current month."""


class OverpaidError(PaymentError):
    """Raised when every installment of the loan has already been paid."""


class StoreError(EmiTrackerError):
    """Raised when the loan store fails an operation."""


class LoanNotFoundError(StoreError):
    """Raised when a referenced loan does not exist."""


class ConfigurationError(EmiTrackerError):
    """Raised when configuration is invalid or missing."""
