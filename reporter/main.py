"""
Command line entry point: interactive chat, batch reports, the HTTP bridge
and credential setup
"""

import argparse
import asyncio
import getpass
import logging
import os
import signal
import sys
from pathlib import Path

import litellm
from dotenv import load_dotenv
from lmnr import Laminar, LaminarLiteLLMCallback

from reporter.auth.tokens import FileTokenStore
from reporter.computer.session import ApprovalRequest
from reporter.config import Config, ServerSpec, init_config, load_config
from reporter.core.agent_loop import Operation, OpType, Submission, submission_loop
from reporter.core.events import QueueEventSink
from reporter.core.mcp_client import MCPClientManager
from reporter.errors import ReporterError
from reporter.report import generate_report
from reporter.runs import JsonRunStore
from reporter.runtime import open_runtime
from reporter.schedule.store import JsonScheduleStore
from reporter.utils.terminal_display import TerminalRenderer

logger = logging.getLogger(__name__)

litellm.drop_params = True

NOISY_LOGGERS = ("LiteLLM", "litellm", "httpx", "httpcore", "mcp")
HELP_TEXT = """Commands:
  /help   show this help
  /clear  start a new conversation
  /exit   quit (Ctrl-D works too)
Ctrl-C cancels the running turn."""


def setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def init_tracing() -> None:
    lmnr_api_key = os.environ.get("LMNR_API_KEY")
    if not lmnr_api_key:
        return
    try:
        Laminar.initialize(project_api_key=lmnr_api_key)
        litellm.callbacks = [LaminarLiteLLMCallback()]
        logger.info("Laminar initialized")
    except Exception as e:
        logger.warning(f"Failed to initialize Laminar: {e}")


async def prompt_input(prompt: str) -> str:
    """Read a line without blocking the event loop"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, input, prompt)


async def cli_approval(request: ApprovalRequest) -> bool:
    print("\n" + "=" * 60)
    print("⚠️  COMPUTER SESSION APPROVAL REQUIRED")
    print("=" * 60)
    print(f"Task: {request.task}")
    if request.start_url:
        print(f"Start URL: {request.start_url}")
    print(f"Max steps: {request.max_steps}")
    print("=" * 60)
    try:
        answer = await prompt_input("Approve? (y/n): ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


async def event_listener(
    event_queue: asyncio.Queue,
    renderer: TerminalRenderer,
    turn_complete_event: asyncio.Event,
    ready_event: asyncio.Event,
) -> None:
    """Background task that renders events"""
    while True:
        event = await event_queue.get()
        if event.event_type == "ready":
            ready_event.set()
        elif event.event_type == "turn_complete":
            print()
            turn_complete_event.set()
        elif event.event_type == "shutdown":
            break
        else:
            renderer.render(event)


async def run_chat(config: Config, verbose: bool) -> None:
    """Interactive chat with the assistant"""
    print("=" * 60)
    print("📋 Reporter chat")
    print("=" * 60)

    renderer = TerminalRenderer(verbose=verbose)
    async with open_runtime(config, approval_handler=cli_approval) as runtime:
        session = runtime.session
        servers = ", ".join(runtime.mcp_manager.connections) or "none"
        print(f"Connected servers: {servers}")
        for name, error in runtime.mcp_manager.failures.items():
            print(f"⚠️  {name} unavailable: {error}")
        print("Type /help for commands.\n")

        submission_queue: asyncio.Queue = asyncio.Queue()
        sink = QueueEventSink()
        turn_complete_event = asyncio.Event()
        turn_complete_event.set()
        ready_event = asyncio.Event()

        agent_task = asyncio.create_task(submission_loop(submission_queue, session, sink))
        listener_task = asyncio.create_task(
            event_listener(sink.queue, renderer, turn_complete_event, ready_event)
        )

        def on_sigint() -> None:
            if session.is_busy:
                print("\n⏹  Cancelling...")
                session.interrupt()
            else:
                print("\n(type /exit or press Ctrl-D to quit)")

        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, on_sigint)
        await ready_event.wait()

        submission_id = 0
        try:
            while True:
                await turn_complete_event.wait()
                try:
                    user_input = (await prompt_input("You: ")).strip()
                except EOFError:
                    break

                if not user_input:
                    continue
                if user_input in ("/exit", "/quit", "exit", "quit"):
                    break
                if user_input == "/help":
                    print(HELP_TEXT)
                    continue

                submission_id += 1
                if user_input == "/clear":
                    operation = Operation(op_type=OpType.CLEAR)
                else:
                    turn_complete_event.clear()
                    operation = Operation(op_type=OpType.USER_INPUT, data={"text": user_input})
                await submission_queue.put(Submission(id=f"sub_{submission_id}", operation=operation))
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            session.interrupt()
            await submission_queue.put(
                Submission(id="sub_shutdown", operation=Operation(op_type=OpType.SHUTDOWN))
            )
            await asyncio.gather(agent_task, return_exceptions=True)
            await asyncio.wait_for(listener_task, timeout=2.0)

    print("✨ Goodbye!\n")


async def run_report(config: Config, schedule_name: str | None, custom_prompt: str) -> int:
    if schedule_name:
        schedule = JsonScheduleStore().get(schedule_name)
        if schedule is None:
            print(f'❌ Schedule "{schedule_name}" not found', file=sys.stderr)
            return 1
        custom_prompt = custom_prompt or schedule.prompt

    async with open_runtime(config) as runtime:
        result = await generate_report(
            runtime.session,
            lookback_days=config.report.lookback_days,
            output_dir=config.report.output_path,
            custom_prompt=custom_prompt,
            schedule_name=schedule_name,
            run_store=JsonRunStore(),
        )

    if not result.text.strip():
        print("❌ The model returned an empty report", file=sys.stderr)
        return 1
    if sys.stdout.isatty():
        TerminalRenderer().print_report(result.text)
    else:
        print(result.text)
    print(f"\n✅ Saved to {result.path}")
    return 0


def run_runs(limit: int, schedule_name: str | None) -> int:
    store = JsonRunStore()
    if schedule_name:
        latest = store.latest_for_schedule(schedule_name)
        runs = [latest] if latest else []
    else:
        runs = store.list_recent(limit)
    if not runs:
        print("No report runs recorded.")
        return 0
    for run in runs:
        label = run.schedule_name or run.source
        detail = run.saved_path or run.error or ""
        print(f"{run.started_at}  {run.status:<9}  {label:<16}  {detail}".rstrip())
    return 0


async def run_login(config: Config, server: str, token: str | None) -> int:
    store = FileTokenStore()
    if server in ("github", "slack"):
        token = token or getpass.getpass(f"{server} token: ").strip()
        if not token:
            print("❌ No token given", file=sys.stderr)
            return 1
        store.set(server, {"access_token": token})
        print(f"✅ Saved {server} token to {store.path}")
        return 0

    # jira: connecting runs the OAuth flow and persists the tokens
    spec = ServerSpec(name="jira", transport="http", url=config.jira.url, auth="oauth")
    async with MCPClientManager(token_store=store) as manager:
        await manager.connect([spec])
        if "jira" not in manager.connections:
            print(f"❌ Jira login failed: {manager.failures.get('jira')}", file=sys.stderr)
            return 1
    print("✅ Jira authorized")
    return 0


def run_logout(server: str) -> int:
    store = FileTokenStore()
    removed = store.delete(server)
    store.delete(f"{server}:client")
    print(f"✅ Removed {server} credentials" if removed else f"No stored credentials for {server}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="reporter", description="Work-reporting assistant")
    parser.add_argument("--config", type=Path, help="Config file (default: ~/reporter/config.json)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("chat", help="Interactive chat (default)")

    report = sub.add_parser("report", help="Generate a report and save it as markdown")
    report.add_argument("--schedule", help="Run the named schedule's prompt")
    report.add_argument("--prompt", default="", help="Extra instructions for this report")

    serve = sub.add_parser("serve", help="Run the HTTP bridge")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=7860)

    runs = sub.add_parser("runs", help="Show recent report runs")
    runs.add_argument("--limit", type=int, default=20)
    runs.add_argument("--schedule", help="Only the latest run of this schedule")

    sub.add_parser("init", help="Write a default config file")

    login = sub.add_parser("login", help="Store credentials for a built-in server")
    login.add_argument("server", choices=["github", "slack", "jira"])
    login.add_argument("--token", help="Token for github/slack (prompted if omitted)")

    logout = sub.add_parser("logout", help="Forget stored credentials")
    logout.add_argument("server")
    return parser


def cli(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    init_tracing()
    command = args.command or "chat"

    if args.config:
        os.environ["REPORTER_CONFIG"] = str(args.config)

    try:
        if command == "init":
            print(f"✅ Config at {init_config(args.config)}")
            return 0
        if command == "logout":
            return run_logout(args.server)
        if command == "runs":
            return run_runs(args.limit, args.schedule)
        config = load_config(args.config)
        if command == "serve":
            import uvicorn

            uvicorn.run("backend.main:app", host=args.host, port=args.port, log_level="info")
            return 0
        if command == "login":
            return asyncio.run(run_login(config, args.server, args.token))
        if command == "report":
            return asyncio.run(run_report(config, args.schedule, args.prompt))
        asyncio.run(run_chat(config, verbose=args.verbose > 0))
        return 0
    except ReporterError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\n✨ Goodbye!")
        return 130


if __name__ == "__main__":
    sys.exit(cli())
