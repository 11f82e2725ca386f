"""Mortgage amortization, independent of the portfolio."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MortgagePayment:
    payment: float
    interest: float
    principal: float


NO_PAYMENT = MortgagePayment(payment=0.0, interest=0.0, principal=0.0)


@dataclass
class LiabilityState:
    """Outstanding mortgage for one run.

    Payments are annual: 12x the monthly payment, with interest charged on the
    start-of-year balance at the annual rate.
    """

    balance: float
    years_left: int
    annual_payment: float
    rate: float

    @property
    def active(self) -> bool:
        return self.balance > 0 and self.years_left > 0

    def service(self) -> MortgagePayment:
        """Make one year of payments; no-op once paid off or out of term."""
        if not self.active:
            return NO_PAYMENT

        interest = self.balance * self.rate
        # a payment below the interest due never grows the balance
        principal = min(self.balance, max(0.0, self.annual_payment - interest))
        self.balance = max(0.0, self.balance - principal)
        self.years_left -= 1
        return MortgagePayment(
            payment=self.annual_payment, interest=interest, principal=principal
        )
