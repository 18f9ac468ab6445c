"""
Interactive OAuth for HTTP tool-servers.

The MCP SDK's `OAuthClientProvider` handles discovery, client registration,
PKCE, code exchange and the single retry after a 401. This module supplies
the interactive half: opening the browser and awaiting the local redirect.
Each connection gets its own `InteractiveAuthorizer`, which serializes
concurrent callers and allows at most one interactive login per connection.
"""

import asyncio
import logging
import webbrowser
from typing import Callable, Optional

from mcp.client.auth import OAuthClientProvider
from mcp.shared.auth import OAuthClientMetadata
from pydantic import AnyUrl

from reporter.auth.callback import CALLBACK_PORT, OAuthCallbackListener
from reporter.auth.tokens import ServerTokenStorage, TokenStore
from reporter.errors import AuthorizationError

logger = logging.getLogger(__name__)


class InteractiveAuthorizer:
    def __init__(
        self,
        server: str,
        port: int = CALLBACK_PORT,
        open_browser: Callable[[str], object] = webbrowser.open,
        listener_factory=OAuthCallbackListener,
    ):
        self.server = server
        self.port = port
        self.open_browser = open_browser
        self.listener_factory = listener_factory
        self.attempts = 0
        self._lock = asyncio.Lock()
        self._authorization_url: Optional[str] = None

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}/callback"

    async def redirect_handler(self, authorization_url: str) -> None:
        # The browser is opened from callback_handler, once the listener is up
        self._authorization_url = authorization_url

    async def callback_handler(self) -> tuple[str, Optional[str]]:
        async with self._lock:
            if self.attempts > 0:
                raise AuthorizationError(
                    f"Authorization for {self.server} failed after an interactive login. "
                    f'Run "reporter logout {self.server}" and restart to log in again.',
                    server=self.server,
                )
            self.attempts += 1
            if not self._authorization_url:
                raise AuthorizationError(
                    f"No authorization URL received for {self.server}",
                    server=self.server,
                )

            logger.warning(f"Authorization required for {self.server}, opening browser...")
            async with self.listener_factory(port=self.port) as listener:
                await asyncio.to_thread(self.open_browser, self._authorization_url)
                result = await listener.wait()
            return result.code, result.state


def build_oauth_provider(
    server: str,
    url: str,
    token_store: TokenStore,
    authorizer: InteractiveAuthorizer,
) -> OAuthClientProvider:
    """Create the httpx auth object used by the streamable HTTP transport"""
    return OAuthClientProvider(
        server_url=url,
        client_metadata=OAuthClientMetadata(
            client_name="reporter-cli",
            redirect_uris=[AnyUrl(authorizer.redirect_uri)],
            grant_types=["authorization_code", "refresh_token"],
            response_types=["code"],
            token_endpoint_auth_method="none",
        ),
        storage=ServerTokenStorage(token_store, server),
        redirect_handler=authorizer.redirect_handler,
        callback_handler=authorizer.callback_handler,
    )
