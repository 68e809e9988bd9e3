"""Player profile: identity, multi-currency balance and held cells."""

from __future__ import annotations

from dataclasses import dataclass, field

from hexterra.models.hex import HexCell
from hexterra.util.constants import CURRENCIES


@dataclass
class Balance:
    tokens: int = 0
    shards: int = 0
    orbs: int = 0

    def as_dict(self) -> dict[str, int]:
        return {kind: getattr(self, kind) for kind in CURRENCIES}


@dataclass
class PlayerProfile:
    """The acting player's account data.

    Attributes:
        player_id: Account id.
        nickname: Display name.
        balance: Tokens, shards and orbs.
        owned_cells: Cells the player holds, in acquisition order.
        level, experience: Progression counters.
        achievements: Achievement keys.
        last_login: ISO timestamp as delivered by the source.
    """

    player_id: str
    nickname: str
    email: str = ""
    balance: Balance = field(default_factory=Balance)
    owned_cells: list[HexCell] = field(default_factory=list)
    level: int = 1
    experience: int = 0
    achievements: list[str] = field(default_factory=list)
    last_login: str = ""
