"""Player payload codec — wire shape of ``user.json``.

Payload format::

    {
      "id": "current_player",
      "nickname": "Explorer",
      "email": "explorer@example.com",
      "balance": {"tokens": 5000, "shards": 12, "orbs": 3},
      "ownedHexes": ["8911aa7a6a3ffff"],
      "level": 4,
      "experience": 1250,
      "achievements": ["first_hex"],
      "lastLogin": "2025-01-01T00:00:00Z"
    }

``id`` and ``nickname`` are required and non-empty; balances are
non-negative.
"""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hexterra.loaders.region_payload import first_error
from hexterra.models.hex import HexCell
from hexterra.models.player import Balance, PlayerProfile
from hexterra.util.errors import DataFormatError, InvalidCellError


class BalancePayload(BaseModel):
    tokens: int = Field(default=0, ge=0)
    shards: int = Field(default=0, ge=0)
    orbs: int = Field(default=0, ge=0)


class PlayerPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    nickname: str = Field(min_length=1)
    email: str = ""
    balance: BalancePayload = Field(default_factory=BalancePayload)
    owned_hexes: List[str] = Field(alias="ownedHexes", default_factory=list)
    level: int = Field(default=1, ge=1)
    experience: int = Field(default=0, ge=0)
    achievements: List[str] = Field(default_factory=list)
    last_login: str = Field(alias="lastLogin", default="")


def parse_player_payload(raw: Any) -> PlayerProfile:
    """Validate a raw ``user.json`` document.

    Raises:
        DataFormatError: Missing id or nickname, bad balance or bad cell ids.
    """
    if not isinstance(raw, dict):
        raise DataFormatError(f"Player payload must be an object, got {type(raw).__name__}")
    try:
        payload = PlayerPayload.model_validate(raw)
    except ValidationError as exc:
        raise DataFormatError(f"Malformed player payload: {first_error(exc)}") from exc

    try:
        cells = [HexCell.parse(index) for index in payload.owned_hexes]
    except InvalidCellError as exc:
        raise DataFormatError(f"Player {payload.id}: {exc}") from exc

    return PlayerProfile(
        player_id=payload.id,
        nickname=payload.nickname,
        email=payload.email,
        balance=Balance(**payload.balance.model_dump()),
        owned_cells=list(dict.fromkeys(cells)),
        level=payload.level,
        experience=payload.experience,
        achievements=list(payload.achievements),
        last_login=payload.last_login,
    )


def player_to_payload(profile: PlayerProfile) -> dict[str, Any]:
    return {
        "id": profile.player_id,
        "nickname": profile.nickname,
        "email": profile.email,
        "balance": profile.balance.as_dict(),
        "ownedHexes": [cell.index for cell in profile.owned_cells],
        "level": profile.level,
        "experience": profile.experience,
        "achievements": list(profile.achievements),
        "lastLogin": profile.last_login,
    }
