from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys

from dmchat import __version__
from dmchat.client.http import HttpMessagingClient
from dmchat.config import (
    ClientConfig,
    clear_stored_session,
    load_stored_session,
    resolve_client_config,
    save_stored_session,
    session_path_for,
)
from dmchat.domain.directory import AccountDirectory
from dmchat.domain.errors import ConfigError, FatalAuthError, FetchError
from dmchat.domain.inbox import InboxBuffer
from dmchat.protocol.models import StoredSession
from dmchat.runtime.controller import ChatController
from dmchat.settings.env import DMCHAT_LOG_FILE, DMCHAT_LOG_LEVEL, read_env
from dmchat.tui.app import run_app

logger = logging.getLogger(__name__)

NOTES = """\
Notes:
    In chatroom mode, exit by entering '/end'. Manually refresh the room by
    entering '/refresh'. Resend failed messages with '/retry'.
"""


def main(argv: list[str] | None = None) -> None:
    print(f"dmchat v{__version__}")
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        return

    try:
        config = resolve_client_config(
            api_url=args.api_url,
            username=args.username,
            password=args.password,
            persist=True if args.persist else None,
            interval=args.interval,
        )
    except ConfigError as exc:
        parser.error(str(exc))

    configure_logging()
    username = config.username or input("Username: ").strip()
    if not username:
        parser.error("a username is required")

    exit_code = asyncio.run(_run(config, username))
    if exit_code:
        raise SystemExit(exit_code)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dmchat",
        description="Browse a direct-message inbox and chat from the terminal",
        epilog=NOTES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--version",
        action="store_true",
        help="Show version",
    )
    parser.add_argument(
        "-s",
        "--persist",
        action="store_true",
        help="Save session on disk",
    )
    parser.add_argument(
        "-u",
        "--username",
        default=None,
        help="Account username (default: will prompt)",
    )
    parser.add_argument(
        "-p",
        "--password",
        default=None,
        help="Account password (default: will prompt)",
    )
    parser.add_argument(
        "-i",
        "--interval",
        default=None,
        help="Polling interval in seconds while a thread is open (default: 5)",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Messaging API base URL (default: $DMCHAT_API_URL or http://127.0.0.1:8080)",
    )
    return parser


def configure_logging() -> None:
    """Send log records to ``DMCHAT_LOG_FILE``; the TUI owns the terminal."""
    log_file = read_env(DMCHAT_LOG_FILE)
    if not log_file:
        return
    level = (read_env(DMCHAT_LOG_LEVEL) or "INFO").upper()
    logging.basicConfig(
        filename=log_file,
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _run(config: ClientConfig, username: str) -> int:
    client = HttpMessagingClient(config.api_url, timeout=config.timeout)
    try:
        print(f"Logging in as {username}")
        try:
            await establish_session(client, config, username)
        except FatalAuthError as exc:
            print(f"✖ Can't log in. {exc}", file=sys.stderr)
            return 1
        print(f"✔ You are logged in as {username}")

        directory = AccountDirectory()
        inbox = InboxBuffer(client, directory)
        print("Fetching recent threads")
        try:
            await inbox.refresh()
        except FetchError as exc:
            print(f"✖ Can't fetch inbox. {exc}", file=sys.stderr)
            return 1

        controller = ChatController(
            client=client,
            inbox=inbox,
            directory=directory,
            interval=config.interval,
        )
        await run_app(controller)
        return 0
    finally:
        await client.close()


async def establish_session(client: HttpMessagingClient, config: ClientConfig, username: str) -> None:
    path = session_path_for(config, username) if config.persist else None

    if path is not None:
        stored = load_stored_session(path)
        if stored is not None:
            try:
                await client.resume(stored.token)
                return
            except FatalAuthError as exc:
                logger.info("Stored session for %s rejected: %s", username, exc)
                clear_stored_session(path)

    password = config.password or getpass.getpass("Password: ")
    session = await client.login(username, password)

    if path is not None:
        save_stored_session(
            path,
            StoredSession(username=username, token=session.token, account_id=session.account.id),
        )
