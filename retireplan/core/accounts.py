"""Account kinds and per-run balance tracking.

Every projection works on the same four account kinds. The order in which
they are tapped to cover a spending shortfall is a tuple of kinds, so an
alternate withdrawal strategy is just a different tuple:

- BROKERAGE: taxable brokerage, withdrawals taxed at the flat rate
- TAX_DEFERRED: 401(k)/traditional IRA, withdrawals (and RMDs) taxed
- ROTH: tax-free withdrawals
- CASH: savings, treated as already-taxed principal
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Sequence, Tuple

from .errors import PlanValidationError


class AccountKind(Enum):
    """Account kinds, tagged with their tax treatment on withdrawal."""

    TAX_DEFERRED = ("tax_deferred", True)
    ROTH = ("roth", False)
    BROKERAGE = ("brokerage", True)
    CASH = ("cash", False)

    def __init__(self, key: str, taxed: bool):
        self.key = key
        self.taxed = taxed

    @classmethod
    def from_key(cls, key: str) -> "AccountKind":
        for kind in cls:
            if kind.key == key:
                return kind
        raise KeyError(f"Unknown account kind: {key!r}")


ALL_KINDS: Tuple[AccountKind, ...] = tuple(AccountKind)

# Brokerage first, then tax-deferred, Roth, and cash last.
DEFAULT_WITHDRAWAL_ORDER: Tuple[AccountKind, ...] = (
    AccountKind.BROKERAGE,
    AccountKind.TAX_DEFERRED,
    AccountKind.ROTH,
    AccountKind.CASH,
)


def validate_withdrawal_order(order: Sequence[AccountKind]) -> Tuple[AccountKind, ...]:
    """Return `order` as a tuple; every kind must appear exactly once."""
    order = tuple(order)
    if len(order) != len(ALL_KINDS) or set(order) != set(ALL_KINDS):
        names = [getattr(k, "key", k) for k in order]
        raise PlanValidationError(
            f"Withdrawal order must list each account kind once, got {names}"
        )
    return order


@dataclass
class AssetState:
    """Mutable balances for a single run. Never shared between runs."""

    balances: Dict[AccountKind, float] = field(
        default_factory=lambda: {k: 0.0 for k in ALL_KINDS}
    )

    @classmethod
    def from_balances(cls, balances: Dict[AccountKind, float]) -> "AssetState":
        state = cls()
        for kind, amount in balances.items():
            state.balances[kind] = max(0.0, float(amount))
        return state

    def balance(self, kind: AccountKind) -> float:
        return self.balances[kind]

    def deposit(self, kind: AccountKind, amount: float) -> None:
        if amount > 0:
            self.balances[kind] += amount

    def withdraw(self, kind: AccountKind, amount: float) -> float:
        """Take up to `amount` from `kind`; returns what was actually taken."""
        if amount <= 0:
            return 0.0
        taken = min(self.balances[kind], amount)
        # float subtraction can leave a tiny negative residue
        self.balances[kind] = max(0.0, self.balances[kind] - taken)
        return taken

    def grow(self, rate: float, kinds: Iterable[AccountKind] = ALL_KINDS) -> None:
        for kind in kinds:
            self.balances[kind] = max(0.0, self.balances[kind] * (1.0 + rate))

    @property
    def total(self) -> float:
        return sum(self.balances.values())

    def snapshot(self) -> Dict[AccountKind, float]:
        return dict(self.balances)
