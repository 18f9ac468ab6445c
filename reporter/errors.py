"""
Exception types shared across the reporter package
"""


class ReporterError(Exception):
    """Base class for reporter errors"""


class ConfigError(ReporterError):
    """Configuration is missing or invalid"""


class ToolRoutingError(ReporterError):
    """A tool call could not be routed to a handler"""


class InvalidToolName(ToolRoutingError):
    """Qualified tool name has no `<server>__<tool>` separator"""


class UnknownServer(ToolRoutingError):
    """Server prefix does not match any connected tool-server"""


class UnknownTool(ToolRoutingError):
    """No handler is registered for the tool"""


class AuthorizationError(ReporterError):
    """Interactive authorization failed or was already attempted"""

    def __init__(self, message: str, server: str | None = None) -> None:
        super().__init__(message)
        self.server = server


class ComputerUseUnsupported(ReporterError):
    """Active provider/model cannot run browsing tasks"""
