import os
import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from reporter.errors import ConfigError

REPORTER_DIR = Path.home() / "reporter"
DEFAULT_CONFIG_PATH = REPORTER_DIR / "config.json"

_ENV_NAME = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_ENV_REF = re.compile(r"\$\{([^}]+)\}")


class LLMConfig(BaseModel):
    """Which vendor/model backs the conversation"""

    provider: Literal["anthropic", "openai"] = "anthropic"
    model: str = "claude-sonnet-4-5-20250929"
    api_key_env: str | None = None


class GitHubConfig(BaseModel):
    enabled: bool = False
    token_env: str | None = None
    # Organizations injected into unscoped issue searches
    orgs: list[str] = []


class JiraConfig(BaseModel):
    enabled: bool = False
    url: str = "https://mcp.atlassian.com/v1/mcp"


class SlackConfig(BaseModel):
    enabled: bool = False
    token_env: str | None = None
    channels: list[str] = []


class ComputerConfig(BaseModel):
    """Limits for the browser-driving sub-session"""

    enabled: bool = False
    require_session_approval: bool = True
    max_steps: int = Field(default=25, gt=0)
    max_duration_sec: float = Field(default=180, gt=0)
    allow_domains: list[str] = []
    block_domains: list[str] = []


class ReportConfig(BaseModel):
    lookback_days: int = Field(default=1, ge=1)
    output_dir: str = "~/reporter/reports"

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir).expanduser()


class MCPServerConfig(BaseModel):
    """Configuration for a custom MCP server"""

    type: Literal["stdio", "http"] = "stdio"
    command: str | None = None
    args: list[str] = []
    env: dict[str, str] = {}
    url: str | None = None
    headers: dict[str, str] = {}


class Config(BaseModel):
    """Configuration manager"""

    llm: LLMConfig = LLMConfig()
    github: GitHubConfig = GitHubConfig()
    jira: JiraConfig = JiraConfig()
    slack: SlackConfig = SlackConfig()
    computer: ComputerConfig = ComputerConfig()
    report: ReportConfig = ReportConfig()
    mcp_servers: dict[str, MCPServerConfig] = {}


class ServerSpec(BaseModel):
    """One tool-server to connect to, after config resolution"""

    name: str
    transport: Literal["stdio", "http"]
    command: str | None = None
    args: list[str] = []
    env: dict[str, str] = {}
    url: str | None = None
    headers: dict[str, str] = {}
    auth: Literal["oauth"] | None = None


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from file"""
    path = Path(
        config_path or os.environ.get("REPORTER_CONFIG") or DEFAULT_CONFIG_PATH
    ).expanduser()
    if not path.exists():
        raise ConfigError(f'Config not found at {path}. Run "reporter init" first.')
    try:
        with open(path, "r") as f:
            return Config.model_validate_json(f.read())
    except ValidationError as e:
        raise ConfigError(f"Invalid config at {path}: {e}") from e


def init_config(config_path: str | Path | None = None) -> Path:
    """Write a default config file if none exists and return its path"""
    path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(Config().model_dump_json(indent=2) + "\n")
    return path


def resolve_secret(value: str) -> str | None:
    """
    Resolve a secret value: an env-var-shaped name (all caps, underscores) is
    looked up in the environment, anything else is the literal secret.
    """
    if _ENV_NAME.match(value):
        return os.environ.get(value)
    return value


def expand_env_vars(value: str) -> str:
    """Expand `${VAR}` (required) and `${VAR:-default}` references"""

    def _replace(match: re.Match) -> str:
        expr = match.group(1)
        name, sep, fallback = expr.partition(":-")
        if sep:
            return os.environ.get(name, fallback)
        if name not in os.environ:
            raise ConfigError(
                f"Environment variable {name} is not set (referenced in mcp_servers)"
            )
        return os.environ[name]

    return _ENV_REF.sub(_replace, value)


def _custom_server_specs(servers: dict[str, MCPServerConfig]) -> list[ServerSpec]:
    specs = []
    for name, server in servers.items():
        if server.type == "stdio":
            if not server.command:
                raise ConfigError(f'MCP server "{name}" (stdio) is missing "command"')
            specs.append(
                ServerSpec(
                    name=name,
                    transport="stdio",
                    command=expand_env_vars(server.command),
                    args=[expand_env_vars(a) for a in server.args],
                    env={k: expand_env_vars(v) for k, v in server.env.items()},
                )
            )
        else:
            if not server.url:
                raise ConfigError(f'MCP server "{name}" (http) is missing "url"')
            specs.append(
                ServerSpec(
                    name=name,
                    transport="http",
                    url=expand_env_vars(server.url),
                    headers={k: expand_env_vars(v) for k, v in server.headers.items()},
                )
            )
    return specs


def get_enabled_servers(config: Config, token_store=None) -> list[ServerSpec]:
    """
    Turn the config into the ordered list of servers to connect to.

    Args:
        config: Loaded configuration
        token_store: Optional TokenStore holding tokens from interactive logins

    Raises:
        ConfigError: if a built-in server is enabled without credentials
    """
    specs: list[ServerSpec] = []

    if config.github.enabled:
        token = _stored_token(token_store, "github")
        if not token and config.github.token_env:
            token = resolve_secret(config.github.token_env)
        if not token:
            raise ConfigError(
                'GitHub enabled but token not configured. Run "reporter login github" '
                "or set github.token_env in config"
            )
        specs.append(
            ServerSpec(
                name="github",
                transport="stdio",
                command="npx",
                args=["-y", "@modelcontextprotocol/server-github"],
                env={"GITHUB_PERSONAL_ACCESS_TOKEN": token},
            )
        )

    if config.jira.enabled:
        specs.append(
            ServerSpec(name="jira", transport="http", url=config.jira.url, auth="oauth")
        )

    if config.slack.enabled:
        # token_env wins over a stored token
        if config.slack.token_env:
            token = resolve_secret(config.slack.token_env)
        else:
            token = _stored_token(token_store, "slack")
        if not token:
            raise ConfigError(
                'Slack enabled but token not configured. Run "reporter login slack" '
                "or set slack.token_env in config"
            )
        specs.append(
            ServerSpec(
                name="slack",
                transport="stdio",
                command="npx",
                args=["-y", "@modelcontextprotocol/server-slack"],
                env={"SLACK_BOT_TOKEN": token},
            )
        )

    specs.extend(_custom_server_specs(config.mcp_servers))
    return specs


def _stored_token(token_store, server: str) -> str | None:
    if token_store is None:
        return None
    entry = token_store.get(server) or {}
    return entry.get("access_token")
