"""Territory constants — fixed invariants that are not tunable.

Tunable values (prices, zoom tables, regions) live in
:class:`~hexterra.loaders.config_loader.HexTerraConfig`.
"""

# -- Grid ----------------------------------------------------------------

MIN_RESOLUTION: int = 0
MAX_RESOLUTION: int = 15
"""Resolution range of the H3 tessellation."""

BULK_PURCHASE_RADIUS: int = 3
"""Ring radius of a bulk purchase: 3*3^2 + 3*3 + 1 = 37 cells."""

# -- Players -------------------------------------------------------------

LOCAL_PLAYER_ID: str = "current_player"
"""Owner id used for the acting player in generated and demo data."""

CURRENCIES: tuple[str, ...] = ("tokens", "shards", "orbs")
"""Balance kinds of a player profile; purchases are paid in tokens."""

# -- Resources -----------------------------------------------------------

RESOURCE_KINDS: tuple[str, ...] = ("oil", "gas", "gold", "silver", "stone", "wood")

RESOURCE_MAX_YIELD: dict[str, int] = {
    "oil": 100,
    "gas": 100,
    "gold": 50,
    "silver": 75,
    "stone": 200,
    "wood": 150,
}
"""Upper bound (exclusive) of generated yields per kind."""

MAX_TILE_LEVEL: int = 5

# -- Geolocation ---------------------------------------------------------

EARTH_RADIUS_M: float = 6_371_000.0

HIGH_ACCURACY_M: float = 10.0
MEDIUM_ACCURACY_M: float = 50.0
