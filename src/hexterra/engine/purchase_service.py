"""Purchase engine — validates and commits territory purchases.

State machine per attempt::

    Idle -> Validating -> Committed | Rejected

Validation runs under the region store's lock on the *current* tiles, so a
selection made before a refresh or a rival claim is re-checked at commit
time.  A commit (ownership change, debit, selection clear, completion event)
runs inside one deferred event batch: consumers are notified only once the
whole transaction has been applied.

Eligibility is a per-cell predicate and cost an integer sum, so the order
in which cells are visited never affects the outcome.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from hexterra.models.hex import HexCell
from hexterra.models.purchase import (
    PurchaseQuote,
    PurchaseResult,
    PurchaseStatus,
    RejectionReason,
    Wallet,
)
from hexterra.util.errors import PersistenceError
from hexterra.util.events import PurchaseCompleted, PurchaseRejected

if TYPE_CHECKING:
    from hexterra.engine.selection import Selection
    from hexterra.engine.spatial_index import SpatialIndexer
    from hexterra.engine.tile_store import TileStore
    from hexterra.persistence.snapshot_store import SnapshotStore
    from hexterra.util.events import EventBus

log = logging.getLogger(__name__)


class PurchaseEngine:
    """Quotes, commits and persists ownership changes.

    Args:
        indexer: For bulk-purchase areas.
        event_bus: Receives purchase events; must be the bus the stores use.
        snapshot_store: Durable save after each commit (optional).
    """

    def __init__(self, indexer: SpatialIndexer, event_bus: EventBus,
                 snapshot_store: Optional[SnapshotStore] = None) -> None:
        self._indexer = indexer
        self._events = event_bus
        self._snapshots = snapshot_store

    # -- Quotes ----------------------------------------------------------

    def quote(self, store: TileStore, cells: Iterable[HexCell]) -> PurchaseQuote:
        """Eligible cells and their total cost against the store's current tiles."""
        tiles = store.snapshot()
        requested = frozenset(cells)
        eligible = frozenset(c for c in requested if c in tiles and tiles[c].is_free)
        total = sum(tiles[c].price for c in eligible)
        return PurchaseQuote(
            requested=requested,
            eligible=eligible,
            skipped=requested - eligible,
            total_cost=total,
        )

    def bulk_quote(self, store: TileStore, center: HexCell) -> PurchaseQuote:
        return self.quote(store, self._indexer.bulk_area(center))

    # -- Purchases -------------------------------------------------------

    async def purchase(self, store: TileStore, cells: Iterable[HexCell], wallet: Wallet,
                       selection: Optional[Selection] = None) -> PurchaseResult:
        """Buy every currently FREE cell of ``cells`` for ``wallet``.

        Returns a COMMITTED or REJECTED result.

        Raises:
            PersistenceError: The commit stands but saving it failed; the
                error carries the committed result.
        """
        targets = frozenset(cells)
        async with store.lock:
            quote = self.quote(store, targets)

            if not quote.eligible:
                return self._reject(store, wallet, quote, RejectionReason.NO_ELIGIBLE_CELLS)
            if not wallet.can_afford(quote.total_cost):
                return self._reject(store, wallet, quote, RejectionReason.INSUFFICIENT_FUNDS,
                                    shortfall=quote.total_cost - wallet.tokens)

            with self._events.deferred():
                changed = store.apply_ownership_change(quote.eligible, wallet.player_id)
                balance = wallet.debit(quote.total_cost)
                if selection is not None:
                    selection.clear()
                result = PurchaseResult(
                    status=PurchaseStatus.COMMITTED,
                    region=store.region,
                    cells_changed=tuple(changed),
                    total_cost=quote.total_cost,
                    balance_after=balance,
                    skipped=quote.skipped,
                )
                self._events.emit(PurchaseCompleted(
                    store.region, wallet.player_id, result.cells_changed,
                    result.total_cost, balance,
                ))
            log.info("Purchase committed in %s: %d cells for %d tokens (player=%s, balance=%d)",
                     store.region, len(changed), quote.total_cost, wallet.player_id, balance)

            await self._persist(store, result)
        return result

    async def purchase_selection(self, store: TileStore, selection: Selection,
                                 wallet: Wallet) -> PurchaseResult:
        """Buy the current selection; it is cleared on success."""
        return await self.purchase(store, selection.cells, wallet, selection)

    async def bulk_purchase(self, store: TileStore, center: HexCell, wallet: Wallet,
                            selection: Optional[Selection] = None) -> PurchaseResult:
        """Buy the free cells of the bulk area around ``center``."""
        return await self.purchase(store, self._indexer.bulk_area(center), wallet, selection)

    # -- Other ownership transitions -------------------------------------

    async def record_external_claim(self, store: TileStore, cells: Iterable[HexCell],
                                    owner: str) -> list[HexCell]:
        """Apply a claim made elsewhere (FREE -> RIVAL)."""
        async with store.lock:
            changed = store.apply_ownership_change(cells, owner)
            if changed:
                await self._persist(store, None)
        return changed

    async def release(self, store: TileStore, cells: Iterable[HexCell]) -> list[HexCell]:
        """Return held cells to FREE."""
        async with store.lock:
            changed = store.apply_ownership_change(cells, None)
            if changed:
                await self._persist(store, None)
        return changed

    async def retry_save(self, store: TileStore) -> None:
        """Save the store again after a PersistenceError; no balance effect."""
        async with store.lock:
            await self._persist(store, None)

    # -- Internal --------------------------------------------------------

    def _reject(self, store: TileStore, wallet: Wallet, quote: PurchaseQuote,
                reason: RejectionReason, shortfall: int = 0) -> PurchaseResult:
        log.info("Purchase rejected in %s: %s (cost=%d, balance=%d)",
                 store.region, reason.value, quote.total_cost, wallet.tokens)
        self._events.emit(PurchaseRejected(store.region, wallet.player_id, reason, shortfall))
        return PurchaseResult(
            status=PurchaseStatus.REJECTED,
            region=store.region,
            total_cost=quote.total_cost,
            balance_after=wallet.tokens,
            reason=reason,
            shortfall=shortfall,
            skipped=quote.skipped,
        )

    async def _persist(self, store: TileStore, result: Optional[PurchaseResult]) -> None:
        if self._snapshots is None:
            return
        try:
            await self._snapshots.save(store.region, store.tiles(), store.revision, store.revised_at)
        except PersistenceError as exc:
            log.warning("Region %s committed in memory but not saved: %s", store.region, exc)
            raise PersistenceError(str(exc), store.region, result) from exc
