"""Sample loan generator."""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator

from emi_tracker.generators.base import BaseGenerator
from emi_tracker.models.enums import TrackingMode
from emi_tracker.models.loan import NewLoan
from emi_tracker.schedule.calendar import add_months

CENT = Decimal("0.01")


class SampleLoanGenerator(BaseGenerator):
    """Generate plausible loans for demos and manual testing."""

    # (label, principal range in thousands, tenures, annual rate range %)
    LOAN_KINDS = {
        "Home Loan": ((1500, 8000), [120, 180, 240], (8.0, 9.5)),
        "Car Loan": ((300, 1500), [36, 48, 60, 84], (8.5, 11.0)),
        "Personal Loan": ((50, 1000), [12, 24, 36, 48, 60], (10.5, 16.0)),
        "Education Loan": ((200, 2000), [60, 84, 120], (9.0, 12.0)),
        "Consumer Durable": ((20, 200), [3, 6, 9, 12], (0.0, 14.0)),
    }

    def generate(
        self,
        today: date | None = None,
        tracking: TrackingMode = TrackingMode.DATE_DRIVEN,
    ) -> NewLoan:
        """Generate a loan that started within the last two years.

        Parameters
        ----------
        today : date | None
            Reference date for start dates (default: ``date.today()``).
        tracking : TrackingMode
            Tracking mode of the generated loan.

        Returns
        -------
        NewLoan
            Generated loan terms.
        """
        today = today or date.today()
        kind = self.random.choice(list(self.LOAN_KINDS))
        (low, high), tenures, (rate_low, rate_high) = self.LOAN_KINDS[kind]

        principal = Decimal(self.random.randint(low, high) * 1000)
        tenure = self.random.choice(tenures)
        annual_rate = Decimal(str(round(self.random.uniform(rate_low, rate_high), 2)))
        start_date = add_months(today, -self.random.randint(0, 24))
        start_date = start_date.replace(day=min(start_date.day, 28))

        return NewLoan(
            name=f"{kind} - {self.fake.company()}",
            total_amount=principal,
            installment_amount=installment_amount(principal, annual_rate, tenure),
            start_date=start_date,
            tenure=tenure,
            interest_rate=annual_rate,
            tracking=tracking,
        )

    def generate_batch(self, count: int, today: date | None = None) -> Iterator[NewLoan]:
        """Generate ``count`` loans."""
        for _ in range(count):
            yield self.generate(today)


def installment_amount(principal: Decimal, annual_rate: Decimal, tenure: int) -> Decimal:
    """Fixed monthly payment amortizing ``principal`` over ``tenure`` months.

    Parameters
    ----------
    principal : Decimal
        Amount borrowed.
    annual_rate : Decimal
        Annual interest rate in percent (e.g. ``Decimal("9.5")``).
    tenure : int
        Number of monthly installments.

    Returns
    -------
    Decimal
        Installment rounded to cents.
    """
    if tenure <= 0:
        raise ValueError("tenure must be positive")

    rate = annual_rate / Decimal(1200)
    if rate > 0:
        factor = (1 + rate) ** tenure
        payment = principal * rate * factor / (factor - 1)
    else:
        payment = principal / tenure
    return payment.quantize(CENT, rounding=ROUND_HALF_UP)
