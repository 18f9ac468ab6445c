"""
Local OAuth redirect listener.

A short-lived HTTP server on a fixed port that accepts one redirect on
`/callback` carrying `code`, `error` or `state`. The listener is an async
context manager: it is started for a single login attempt and always shut
down on exit, whether the callback arrived, failed or timed out.
"""

import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from reporter.errors import AuthorizationError

logger = logging.getLogger(__name__)

CALLBACK_PORT = 32191
CALLBACK_PATH = "/callback"
CALLBACK_TIMEOUT_SEC = 120.0


@dataclass
class OAuthCallbackResult:
    code: str
    state: Optional[str] = None


def _html_page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><title>Reporter - {title}</title>
<style>body{{font-family:system-ui;display:flex;justify-content:center;align-items:center;height:100vh;margin:0;background:#f5f5f5}}
.card{{background:#fff;padding:2rem 3rem;border-radius:12px;box-shadow:0 2px 8px rgba(0,0,0,.1);text-align:center}}
h1{{margin:0 0 .5rem}}</style></head>
<body><div class="card"><h1>{title}</h1><p>{body}</p></div></body></html>"""


def build_callback_app(result: asyncio.Future) -> FastAPI:
    """Build the ASGI app that resolves `result` on the first callback"""
    app = FastAPI()

    @app.get(CALLBACK_PATH)
    async def oauth_callback(
        code: str = "",
        state: Optional[str] = None,
        error: str = "",
        error_description: str = "",
    ) -> HTMLResponse:
        if error:
            desc = error_description or error
            if not result.done():
                result.set_exception(AuthorizationError(f"OAuth denied: {desc}"))
            return HTMLResponse(_html_page("Authorization Denied", desc))

        if not code:
            if not result.done():
                result.set_exception(
                    AuthorizationError("No authorization code received.")
                )
            return HTMLResponse(_html_page("Error", "No authorization code received."))

        if not result.done():
            result.set_result(OAuthCallbackResult(code=code, state=state))
        return HTMLResponse(
            _html_page("Success!", "Authenticated. You can close this tab.")
        )

    return app


class OAuthCallbackListener:
    """
    Scoped callback server for one login attempt.

    Usage:
        async with OAuthCallbackListener() as listener:
            open_browser(authorization_url)
            result = await listener.wait()
    """

    def __init__(
        self,
        port: int = CALLBACK_PORT,
        timeout: float = CALLBACK_TIMEOUT_SEC,
        host: str = "127.0.0.1",
    ):
        self.port = port
        self.timeout = timeout
        self.host = host
        self._result: Optional[asyncio.Future] = None
        self._server: Optional[uvicorn.Server] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._sock: Optional[socket.socket] = None

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}{CALLBACK_PATH}"

    async def __aenter__(self) -> "OAuthCallbackListener":
        self._result = asyncio.get_running_loop().create_future()
        config = uvicorn.Config(
            build_callback_app(self._result),
            host=self.host,
            port=self.port,
            log_level="warning",
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise AuthorizationError(
                f"Could not start OAuth callback listener on port {self.port}: {e}"
            ) from e
        self._sock = sock
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[sock]))
        while not self._server.started:
            if self._serve_task.done():
                self._serve_task.result()
                raise AuthorizationError("OAuth callback listener exited early")
            await asyncio.sleep(0.05)
        logger.info(f"Waiting for OAuth callback on port {self.port}...")
        return self

    async def wait(self) -> OAuthCallbackResult:
        assert self._result is not None, "listener not started"
        try:
            return await asyncio.wait_for(asyncio.shield(self._result), self.timeout)
        except asyncio.TimeoutError:
            raise AuthorizationError(
                "OAuth timed out: no callback within 2 minutes."
            ) from None

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._serve_task is not None:
            await asyncio.gather(self._serve_task, return_exceptions=True)
        if self._result is not None and not self._result.done():
            self._result.cancel()
        if self._sock is not None:
            self._sock.close()
        self._server = None
        self._serve_task = None
        self._sock = None
