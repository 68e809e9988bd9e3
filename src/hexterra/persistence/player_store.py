"""Player data — where the profile comes from and where it is kept.

The source delivers the account document (``user.json``) read-only.  The
store keeps the locally updated profile in its own YAML file, separate from
region snapshots: a balance save never rewrites tile data and vice versa.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx
import yaml

from hexterra.loaders.player_payload import parse_player_payload, player_to_payload
from hexterra.models.player import PlayerProfile
from hexterra.util.errors import DataFormatError, LoadError, PersistenceError

log = logging.getLogger(__name__)

PLAYER_FILE_NAME = "user.json"


class PlayerDataSource(Protocol):
    async def fetch(self) -> Any: ...


# ===================================================================
# Sources
# ===================================================================


class HttpPlayerSource:
    """``GET {base_url}/user.json`` via httpx."""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None,
                 timeout_s: float = 10.0) -> None:
        self.url = f"{base_url.rstrip('/')}/{PLAYER_FILE_NAME}"
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout_s

    async def fetch(self) -> Any:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        try:
            response = await self._client.get(self.url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise LoadError(f"HTTP {status} fetching {self.url}", status=status) from exc
        except httpx.HTTPError as exc:
            raise LoadError(f"Request for {self.url} failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise DataFormatError(f"Response from {self.url} is not JSON") from exc

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class FilePlayerSource:
    """Reads the profile document from a JSON or YAML file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    async def fetch(self) -> Any:
        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise DataFormatError(f"{self.path} is not UTF-8 text: {exc}") from exc
        except OSError as exc:
            raise LoadError(f"Cannot read {self.path}: {exc}") from exc

        try:
            if self.path.suffix == ".json":
                return json.loads(text)
            return yaml.safe_load(text)
        except (ValueError, yaml.YAMLError) as exc:
            raise DataFormatError(f"Cannot decode {self.path}: {exc}") from exc


# ===================================================================
# Local store
# ===================================================================


class YamlPlayerStore:
    """The locally updated profile in one YAML file, replaced atomically."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    async def save(self, profile: PlayerProfile) -> None:
        tmp = self.path.with_suffix(".yaml.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                yaml.dump(player_to_payload(profile), default_flow_style=False,
                          allow_unicode=True, sort_keys=False),
                encoding="utf-8",
            )
            tmp.replace(self.path)
        except (OSError, yaml.YAMLError) as exc:
            log.exception("Failed to save player %s to %s", profile.player_id, self.path)
            if tmp.exists():
                tmp.unlink()
            raise PersistenceError(f"Cannot write {self.path}: {exc}") from exc
        log.info("Player %s saved to %s (tokens=%d)",
                 profile.player_id, self.path, profile.balance.tokens)

    async def load(self) -> Optional[PlayerProfile]:
        """The saved profile; None if nothing was saved yet.

        Raises:
            PersistenceError: The file exists but cannot be read.
            DataFormatError: The file is not a valid profile.
        """
        if not self.path.exists():
            return None
        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except UnicodeDecodeError as exc:
            raise DataFormatError(f"{self.path} is not UTF-8 text: {exc}") from exc
        except OSError as exc:
            raise PersistenceError(f"Cannot read {self.path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise DataFormatError(f"Cannot parse {self.path}: {exc}") from exc
        return parse_player_payload(raw)
