"""Error taxonomy for the territory subsystem.

Faults are exceptions; expected purchase outcomes (no money, nothing to buy)
are values on :class:`~hexterra.models.purchase.PurchaseResult` instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from hexterra.models.purchase import PurchaseResult


class HexTerraError(Exception):
    """Base class for all errors raised by hexterra."""


class InvalidCellError(HexTerraError, ValueError):
    """Malformed cell key, out-of-range resolution or coordinate."""


class DistanceUndefinedError(InvalidCellError):
    """Grid distance requested between cells that share no common grid."""


class DataFormatError(HexTerraError):
    """A region or player payload does not have the expected shape."""

    def __init__(self, message: str, region: Optional[str] = None) -> None:
        super().__init__(message)
        self.region = region


class LoadError(HexTerraError):
    """Fetching region or player data failed (network, HTTP status, missing file).

    Retryable by the caller; the loader never retries on its own.
    """

    retryable = True

    def __init__(self, message: str, region: Optional[str] = None,
                 status: Optional[int] = None) -> None:
        super().__init__(message)
        self.region = region
        self.status = status


class PersistenceError(HexTerraError):
    """The in-memory commit stands but the durable save failed.

    ``result`` holds the committed purchase (if the save followed one) so the
    caller can retry the save without charging or granting anything twice.
    """

    def __init__(self, message: str, region: Optional[str] = None,
                 result: Optional[PurchaseResult] = None) -> None:
        super().__init__(message)
        self.region = region
        self.result = result


# User-facing message keys
MSG_NO_MONEY = "insufficient_funds"
MSG_NOTHING_TO_BUY = "no_eligible_cells"
MSG_DATA_UNAVAILABLE = "data_unavailable"
MSG_SAVED_NOT_CONFIRMED = "saved_not_confirmed"


def user_message(outcome: Any) -> Optional[str]:
    """Map an error or a rejected purchase to one of four UI message keys.

    Returns None for outcomes that need no message (a committed purchase).
    """
    from hexterra.models.purchase import PurchaseResult, RejectionReason

    if isinstance(outcome, PersistenceError):
        return MSG_SAVED_NOT_CONFIRMED
    if isinstance(outcome, (LoadError, DataFormatError)):
        return MSG_DATA_UNAVAILABLE
    if isinstance(outcome, PurchaseResult):
        if outcome.reason is RejectionReason.INSUFFICIENT_FUNDS:
            return MSG_NO_MONEY
        if outcome.reason is RejectionReason.NO_ELIGIBLE_CELLS:
            return MSG_NOTHING_TO_BUY
    return None
