"""Tile store — the authoritative tile set of one region.

The tile mapping is never mutated in place: every change builds a new
mapping and swaps it in with a single assignment, so a reader holding
:meth:`TileStore.snapshot` never observes a half-applied batch.

Methods here are synchronous.  Callers that read, validate and then commit
(purchase engine, region refresh) hold :attr:`TileStore.lock` across the
sequence.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Iterable, Mapping, Optional

from hexterra.models.hex import HexCell, HexTile, OwnershipStatus, StatusCounts
from hexterra.util.constants import LOCAL_PLAYER_ID
from hexterra.util.events import OwnershipChanged, TilesReplaced

if TYPE_CHECKING:
    from hexterra.util.events import EventBus

log = logging.getLogger(__name__)


class TileStore:
    """In-memory tiles of one region keyed by cell.

    Args:
        region: Region key this store belongs to.
        local_player_id: Owner id that maps to OWNED; any other owner is RIVAL.
        event_bus: Receives TilesReplaced / OwnershipChanged (optional).
        clock: Time source for ``last_updated`` stamps.
    """

    def __init__(
        self,
        region: str,
        local_player_id: str = LOCAL_PLAYER_ID,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.region = region
        self.local_player_id = local_player_id
        self._events = event_bus
        self._clock = clock
        self._tiles: Mapping[HexCell, HexTile] = MappingProxyType({})
        self.revision = 0
        self.revised_at = 0.0
        self.synced_seq = 0
        self.lock = asyncio.Lock()

    # -- Reads -----------------------------------------------------------

    def get(self, cell: HexCell) -> Optional[HexTile]:
        return self._tiles.get(cell)

    def snapshot(self) -> Mapping[HexCell, HexTile]:
        """The current read-only mapping; later writes never alter it."""
        return self._tiles

    def tiles(self) -> list[HexTile]:
        return list(self._tiles.values())

    def filter_by_status(self, status: OwnershipStatus) -> list[HexTile]:
        return [t for t in self._tiles.values() if t.status is status]

    def status_counts(self) -> StatusCounts:
        """Counts per status, recomputed over the current tiles."""
        return count_statuses(self._tiles.values())

    def __len__(self) -> int:
        return len(self._tiles)

    def __contains__(self, cell: object) -> bool:
        return cell in self._tiles

    # -- Writes ----------------------------------------------------------

    def upsert_all(self, tiles: Iterable[HexTile], synced_seq: Optional[int] = None) -> int:
        """Replace or insert tiles; returns the number written.

        Existing cells not in ``tiles`` are kept.
        """
        updated = dict(self._tiles)
        count = 0
        for tile in tiles:
            updated[tile.cell] = tile
            count += 1
        self._swap(updated)
        if synced_seq is not None:
            self.synced_seq = synced_seq
        log.debug("Region %s: upserted %d tiles (rev %d)", self.region, count, self.revision)
        self._emit(TilesReplaced(self.region, self.revision, len(self._tiles)))
        return count

    def replace_all(self, tiles: Iterable[HexTile], synced_seq: Optional[int] = None) -> int:
        """Swap in exactly ``tiles``; cells not listed are dropped."""
        updated = {t.cell: t for t in tiles}
        dropped = sum(1 for cell in self._tiles if cell not in updated)
        self._swap(updated)
        if synced_seq is not None:
            self.synced_seq = synced_seq
        if dropped:
            log.info("Region %s: %d tiles no longer in source data", self.region, dropped)
        log.debug("Region %s: replaced with %d tiles (rev %d)",
                  self.region, len(updated), self.revision)
        self._emit(TilesReplaced(self.region, self.revision, len(self._tiles)))
        return len(updated)

    def insert_missing(self, tiles: Iterable[HexTile]) -> int:
        """Insert only tiles whose cell is not yet known."""
        new = {t.cell: t for t in tiles if t.cell not in self._tiles}
        if not new:
            return 0
        updated = dict(self._tiles)
        updated.update(new)
        self._swap(updated)
        self._emit(TilesReplaced(self.region, self.revision, len(self._tiles)))
        return len(new)

    def apply_ownership_change(self, cells: Iterable[HexCell],
                               new_owner: Optional[str]) -> list[HexCell]:
        """Transfer ownership; returns the cells that actually changed.

        With an owner, only FREE cells are taken (OWNED for the local
        player, RIVAL otherwise).  With ``None``, only held cells are freed.
        Unknown and skipped cells are left out of the result.
        """
        if new_owner is None:
            new_status = OwnershipStatus.FREE
        elif new_owner == self.local_player_id:
            new_status = OwnershipStatus.OWNED
        else:
            new_status = OwnershipStatus.RIVAL

        now = self._clock()
        updated: dict[HexCell, HexTile] = {}
        for cell in set(cells):
            tile = self._tiles.get(cell)
            if tile is None:
                continue
            if new_owner is not None and not tile.is_free:
                continue
            if new_owner is None and tile.is_free:
                continue
            updated[cell] = replace(
                tile,
                status=new_status,
                owner=new_owner,
                last_updated=max(now, tile.last_updated),
            )

        if not updated:
            return []

        merged = dict(self._tiles)
        merged.update(updated)
        self._swap(merged)
        changed = sorted(updated)
        log.info("Region %s: %d tiles -> %s (owner=%s, rev %d)",
                 self.region, len(changed), new_status.value, new_owner, self.revision)
        self._emit(OwnershipChanged(self.region, self.revision, tuple(changed), new_owner))
        return changed

    # -- Internal --------------------------------------------------------

    def _swap(self, tiles: dict[HexCell, HexTile]) -> None:
        self._tiles = MappingProxyType(tiles)
        self.revision += 1
        self.revised_at = self._clock()

    def _emit(self, event: object) -> None:
        if self._events is not None:
            self._events.emit(event)


def count_statuses(tiles: Iterable[HexTile]) -> StatusCounts:
    owned = free = rival = 0
    for tile in tiles:
        if tile.status is OwnershipStatus.OWNED:
            owned += 1
        elif tile.status is OwnershipStatus.RIVAL:
            rival += 1
        else:
            free += 1
    return StatusCounts(owned=owned, free=free, rival=rival)
