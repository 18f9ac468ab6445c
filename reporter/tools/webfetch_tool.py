"""
Web fetch tool: GET a URL and return its text or raw HTML
"""

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from reporter.core.cancellation import race_cancel
from reporter.core.tools import ToolCallContext
from reporter.tools.process import truncate

MAX_RESPONSE_BYTES = 5 * 1024 * 1024
DEFAULT_TIMEOUT_MS = 30_000
MAX_TIMEOUT_MS = 120_000

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class ResponseTooLarge(Exception):
    pass


@dataclass
class FetchedPage:
    status_code: int
    reason: str
    content_type: str
    text: str

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400


def html_to_text(html: str) -> str:
    """Strip markup, scripts and page chrome, keeping one line per block"""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "nav", "footer", "iframe", "noscript"]):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text("\n").splitlines())
    return "\n".join(line for line in lines if line)


async def _fetch(url: str, timeout: float) -> FetchedPage:
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        async with client.stream(
            "GET",
            url,
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
        ) as response:
            length = int(response.headers.get("content-length") or 0)
            if length > MAX_RESPONSE_BYTES:
                raise ResponseTooLarge(length)
            body = bytearray()
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) > MAX_RESPONSE_BYTES:
                    raise ResponseTooLarge(len(body))
            return FetchedPage(
                status_code=response.status_code,
                reason=response.reason_phrase,
                content_type=response.headers.get("content-type", ""),
                text=bytes(body).decode(response.charset_encoding or "utf-8", errors="replace"),
            )


async def webfetch_handler(arguments: dict[str, Any], context: ToolCallContext) -> tuple[str, bool]:
    """Fetch a web page"""
    url = arguments.get("url", "")
    if not url:
        return "Error: No URL provided", False
    if urlparse(url).scheme not in ("http", "https"):
        return "Error: only HTTP/HTTPS URLs are supported", False
    output_format = arguments.get("format") or "text"
    timeout_ms = min(MAX_TIMEOUT_MS, max(1000, int(arguments.get("timeout") or DEFAULT_TIMEOUT_MS)))

    fetch = await race_cancel(_fetch(url, timeout_ms / 1000), context.cancel_event)
    if not fetch.finished:
        return "Aborted", False

    try:
        page = fetch.result()
    except ResponseTooLarge as e:
        return f"Error: response too large ({e.args[0] / 1024 / 1024:.1f}MB, max 5MB)", False
    except httpx.TimeoutException:
        return f"Error: request timed out after {timeout_ms // 1000}s", False
    except httpx.RequestError as e:
        return f"Request error fetching {url}: {str(e)}", False

    if page.is_error:
        return f"Error: HTTP {page.status_code} {page.reason}", False

    body = page.text
    is_html = "html" in page.content_type
    if output_format == "text" and is_html:
        body = html_to_text(body)
    return truncate(body), True


WEBFETCH_TOOL_SPEC = {
    "name": "webfetch",
    "description": (
        "Fetch content from a URL. HTML pages are converted to readable text by default. "
        "Use this to read web pages, documentation, articles, etc."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "The URL to fetch"},
            "format": {
                "type": "string",
                "enum": ["text", "html"],
                "description": "Output format: text (default, strips tags) or html (raw)",
            },
            "timeout": {
                "type": "integer",
                "description": "Timeout in milliseconds (default: 30000, max: 120000)",
            },
        },
        "required": ["url"],
    },
}
