"""
Token storage.

Stores are keyed by server name (`jira`, `slack`, ...); OAuth client
registrations live under `<server>:client`. The file-backed store keeps
everything in one JSON document readable only by the owner.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from mcp.client.auth import TokenStorage
from mcp.shared.auth import OAuthClientInformationFull, OAuthToken

from reporter.config import REPORTER_DIR

logger = logging.getLogger(__name__)

DEFAULT_TOKENS_PATH = REPORTER_DIR / "auth" / "tokens.json"


class TokenStore:
    """Explicit load/save interface over a dict of per-server entries"""

    def load(self) -> dict[str, dict[str, Any]]:
        raise NotImplementedError

    def save(self, data: dict[str, dict[str, Any]]) -> None:
        raise NotImplementedError

    def get(self, key: str) -> Optional[dict[str, Any]]:
        return self.load().get(key)

    def set(self, key: str, value: dict[str, Any]) -> None:
        data = self.load()
        data[key] = value
        self.save(data)

    def delete(self, key: str) -> bool:
        data = self.load()
        if key not in data:
            return False
        del data[key]
        self.save(data)
        return True


class InMemoryTokenStore(TokenStore):
    def __init__(self, initial: Optional[dict[str, dict[str, Any]]] = None):
        self._data = dict(initial or {})

    def load(self) -> dict[str, dict[str, Any]]:
        return dict(self._data)

    def save(self, data: dict[str, dict[str, Any]]) -> None:
        self._data = dict(data)


class FileTokenStore(TokenStore):
    def __init__(self, path: Path | str = DEFAULT_TOKENS_PATH):
        self.path = Path(path).expanduser()

    def load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable token file {self.path}: {e}")
            return {}

    def save(self, data: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        # files written by older versions may still be group-readable
        os.chmod(self.path, 0o600)


class ServerTokenStorage(TokenStorage):
    """Adapts a TokenStore to the MCP SDK's per-server TokenStorage protocol"""

    def __init__(self, store: TokenStore, server: str):
        self.store = store
        self.server = server

    async def get_tokens(self) -> OAuthToken | None:
        entry = self.store.get(self.server)
        return OAuthToken.model_validate(entry) if entry else None

    async def set_tokens(self, tokens: OAuthToken) -> None:
        self.store.set(self.server, tokens.model_dump(mode="json", exclude_none=True))

    async def get_client_info(self) -> OAuthClientInformationFull | None:
        entry = self.store.get(f"{self.server}:client")
        return OAuthClientInformationFull.model_validate(entry) if entry else None

    async def set_client_info(self, client_info: OAuthClientInformationFull) -> None:
        self.store.set(
            f"{self.server}:client",
            client_info.model_dump(mode="json", exclude_none=True),
        )
