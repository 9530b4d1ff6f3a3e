"""Sample data generators."""

from emi_tracker.generators.loan import SampleLoanGenerator, installment_amount

__all__ = ["SampleLoanGenerator", "installment_amount"]
