"""Purchase quotes, outcomes and the player's wallet."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from hexterra.models.hex import HexCell


class PurchaseStatus(Enum):
    COMMITTED = "committed"
    REJECTED = "rejected"


class RejectionReason(Enum):
    NO_ELIGIBLE_CELLS = "no_eligible_cells"
    INSUFFICIENT_FUNDS = "insufficient_funds"


@dataclass(frozen=True)
class PurchaseQuote:
    """Eligibility and cost of a target set against one store state.

    Attributes:
        requested: All target cells.
        eligible: Targets that are currently FREE.
        skipped: Targets that are owned, rival-held or unknown.
        total_cost: Sum of eligible prices.
    """

    requested: frozenset[HexCell] = frozenset()
    eligible: frozenset[HexCell] = frozenset()
    skipped: frozenset[HexCell] = frozenset()
    total_cost: int = 0


@dataclass(frozen=True)
class PurchaseResult:
    """Outcome of one purchase attempt.

    Rejections are ordinary outcomes, not errors: ``reason`` tells the UI
    whether the player lacks funds or there was nothing to buy.
    """

    status: PurchaseStatus
    region: str
    cells_changed: tuple[HexCell, ...] = ()
    total_cost: int = 0
    balance_after: int = 0
    reason: Optional[RejectionReason] = None
    shortfall: int = 0
    skipped: frozenset[HexCell] = frozenset()

    @property
    def committed(self) -> bool:
        return self.status is PurchaseStatus.COMMITTED


@dataclass
class Wallet:
    """The acting player's identity and token balance.

    Only the purchase engine debits a wallet; it does so under the region
    lock together with the ownership change.
    """

    player_id: str
    tokens: int = 0

    def can_afford(self, amount: int) -> bool:
        return amount <= self.tokens

    def debit(self, amount: int) -> int:
        """Remove ``amount`` tokens and return the new balance."""
        if amount < 0:
            raise ValueError(f"Cannot debit a negative amount: {amount}")
        if amount > self.tokens:
            raise ValueError(f"Balance {self.tokens} too low to debit {amount}")
        self.tokens -= amount
        return self.tokens
