"""
Wires configuration into a ready-to-use ChatSession.

Shared by the CLI, the batch report generator and the HTTP bridge so every
front end gets the same provider, tool-servers and built-in tools.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from reporter.auth.tokens import FileTokenStore, TokenStore
from reporter.computer.policy import NetworkPolicy
from reporter.computer.session import ApprovalHandler, ComputerSessionGovernor
from reporter.config import Config, get_enabled_servers
from reporter.context_manager.manager import ContextManager
from reporter.core.mcp_client import MCPClientManager
from reporter.core.providers import BrowserRunner, create_provider
from reporter.core.session import ChatSession
from reporter.core.tools import ToolRouter
from reporter.schedule.crontab import CrontabInstaller
from reporter.schedule.store import JsonScheduleStore, ScheduleStore
from reporter.todo import TodoStore
from reporter.tools import create_builtin_tools

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    config: Config
    session: ChatSession
    mcp_manager: MCPClientManager
    tool_router: ToolRouter


@asynccontextmanager
async def open_runtime(
    config: Config,
    approval_handler: Optional[ApprovalHandler] = None,
    token_store: Optional[TokenStore] = None,
    schedule_store: Optional[ScheduleStore] = None,
    installer: Optional[CrontabInstaller] = None,
    todo_store: Optional[TodoStore] = None,
    browser_runner: Optional[BrowserRunner] = None,
    provider=None,
) -> AsyncIterator[Runtime]:
    """
    Connect every enabled tool-server and build the session.

    Servers that fail to connect are skipped; all connections are released
    when the context exits.
    """
    token_store = token_store or FileTokenStore()
    provider = provider or create_provider(config.llm, browser_runner=browser_runner)
    governor = ComputerSessionGovernor(
        provider,
        NetworkPolicy(
            allow_domains=config.computer.allow_domains,
            block_domains=config.computer.block_domains,
        ),
        require_approval=config.computer.require_session_approval,
        approval_handler=approval_handler,
    )

    async with MCPClientManager(token_store=token_store, github_orgs=config.github.orgs) as manager:
        await manager.connect(get_enabled_servers(config, token_store))
        router = ToolRouter(
            mcp_manager=manager,
            builtin_tools=create_builtin_tools(
                schedule_store or JsonScheduleStore(),
                installer or CrontabInstaller(),
                governor=governor,
                computer_config=config.computer,
                todo_store=todo_store,
            ),
        )
        catalog = router.catalog()
        context_manager = ContextManager(
            servers=list(manager.connections),
            num_tools=len(catalog),
            github_orgs=config.github.orgs,
            lookback_days=config.report.lookback_days,
            computer_enabled=config.computer.enabled,
        )
        logger.info(f"Runtime ready: {len(manager.connections)} servers, {len(catalog)} tools")
        yield Runtime(
            config=config,
            session=ChatSession(provider, router, context_manager),
            mcp_manager=manager,
            tool_router=router,
        )
