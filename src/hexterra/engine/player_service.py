"""Player service — the acting player's profile and balances.

The profile is loaded once and cached until invalidated.  A locally saved
profile wins over the source document, since it carries every purchase
made since the source was last written.  Without a source, a default
profile is built from configuration.

Purchases update the profile through :meth:`PlayerService.record_purchase`
(wired to PurchaseCompleted); :meth:`PlayerService.save` writes it to the
player store.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Optional

from hexterra.loaders.player_payload import parse_player_payload
from hexterra.models.player import Balance, PlayerProfile
from hexterra.util.constants import CURRENCIES

if TYPE_CHECKING:
    from hexterra.models.purchase import Wallet
    from hexterra.persistence.player_store import PlayerDataSource, YamlPlayerStore
    from hexterra.util.events import PurchaseCompleted

log = logging.getLogger(__name__)


class PlayerService:
    """Cache-first access to the player profile.

    Args:
        default_profile: Used when neither a saved profile nor a source exists.
        source: Read-only account document (optional).
        store: Local profile persistence (optional).
    """

    def __init__(self, default_profile: PlayerProfile,
                 source: Optional[PlayerDataSource] = None,
                 store: Optional[YamlPlayerStore] = None) -> None:
        self._default = default_profile
        self._source = source
        self._store = store
        self._profile: Optional[PlayerProfile] = None
        self.dirty = False

    @property
    def profile(self) -> Optional[PlayerProfile]:
        return self._profile

    @property
    def source(self) -> Optional[PlayerDataSource]:
        return self._source

    async def load(self) -> PlayerProfile:
        """The cached profile, loading it on first use.

        Raises:
            LoadError, DataFormatError: The source could not deliver a valid profile.
            PersistenceError: A saved profile exists but cannot be read.
        """
        if self._profile is not None:
            log.debug("Player %s served from cache", self._profile.player_id)
            return self._profile

        profile = await self._store.load() if self._store is not None else None
        if profile is not None:
            log.info("Player %s restored from %s", profile.player_id, self._store.path)
        elif self._source is not None:
            profile = parse_player_payload(await self._source.fetch())
            log.info("Player %s (%s) loaded", profile.player_id, profile.nickname)
        else:
            profile = replace(self._default, balance=replace(self._default.balance),
                              owned_cells=list(self._default.owned_cells))
            log.info("No player data configured; using default profile %s", profile.player_id)

        self._profile = profile
        self.dirty = False
        return profile

    def invalidate(self) -> None:
        self._profile = None
        self.dirty = False

    # -- Balances --------------------------------------------------------

    def seed_wallet(self, wallet: Wallet) -> None:
        """Set the wallet's tokens from the loaded profile."""
        profile = self._require()
        if profile.player_id != wallet.player_id:
            log.warning("Profile %s funds wallet of %s", profile.player_id, wallet.player_id)
        wallet.tokens = profile.balance.tokens
        log.info("Wallet of %s seeded with %d tokens", wallet.player_id, wallet.tokens)

    def update_balance(self, **changes: int) -> Balance:
        """Overwrite the named balances; others are kept.

        Raises:
            ValueError: Unknown currency or a negative amount.
        """
        profile = self._require()
        for kind, amount in changes.items():
            if kind not in CURRENCIES:
                raise ValueError(f"Unknown currency {kind!r} (expected one of {CURRENCIES})")
            if amount < 0:
                raise ValueError(f"Balance of {kind} cannot be negative: {amount}")
        profile.balance = replace(profile.balance, **changes)
        self.dirty = True
        return profile.balance

    def record_purchase(self, evt: PurchaseCompleted) -> None:
        """Apply a committed purchase: new token balance, new cells."""
        profile = self._profile
        if profile is None:
            log.debug("Purchase by %s before a profile was loaded", evt.player_id)
            return
        profile.balance = replace(profile.balance, tokens=evt.balance_after)
        known = set(profile.owned_cells)
        profile.owned_cells.extend(c for c in evt.cells_changed if c not in known)
        self.dirty = True

    # -- Persistence -----------------------------------------------------

    async def save(self) -> bool:
        """Write the profile if it changed; returns whether a write happened.

        Raises:
            PersistenceError: The store could not write; the profile stays dirty.
        """
        if self._store is None or self._profile is None or not self.dirty:
            return False
        await self._store.save(self._profile)
        self.dirty = False
        return True

    def _require(self) -> PlayerProfile:
        if self._profile is None:
            raise RuntimeError("Player profile not loaded; call load() first")
        return self._profile
