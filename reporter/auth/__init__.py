"""
Credential storage and interactive OAuth for HTTP tool-servers
"""

from reporter.auth.callback import CALLBACK_PATH, CALLBACK_PORT, OAuthCallbackListener
from reporter.auth.oauth import InteractiveAuthorizer, build_oauth_provider
from reporter.auth.tokens import FileTokenStore, InMemoryTokenStore, TokenStore

__all__ = [
    "CALLBACK_PATH",
    "CALLBACK_PORT",
    "FileTokenStore",
    "InMemoryTokenStore",
    "InteractiveAuthorizer",
    "OAuthCallbackListener",
    "TokenStore",
    "build_oauth_provider",
]
