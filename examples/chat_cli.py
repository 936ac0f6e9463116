#!/usr/bin/env python3
"""Chat with a random stranger from the terminal.

This example demonstrates:
- registering an observer for protocol events
- interests sent with the bootstrap request
- sending lines typed on stdin while the poll loop runs
- `/next` to skip to another stranger and `/quit` to leave
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

from stranger_chat_client import (
    ChallengeTokenError,
    SessionClient,
    SessionObserver,
    StrangerChatSettings,
    parse_interests,
)


class PrintingObserver(SessionObserver):
    """Print protocol events as they arrive."""

    async def on_waiting(self) -> None:
        print("[status] looking for someone to chat with...")

    async def on_connected(self, matched_interests: Sequence[str]) -> None:
        if matched_interests:
            print(f"[status] connected; you both like: {', '.join(matched_interests)}")
        else:
            print("[status] connected to a stranger")

    async def on_typing(self) -> None:
        print("[status] stranger is typing...")

    async def on_message(self, text: str) -> None:
        print(f"[stranger] {text}")

    async def on_peer_disconnected(self) -> None:
        print("[status] stranger has disconnected (type /next for another)")

    async def on_recaptcha_required(self) -> None:
        print("[warn] the server requires a captcha; try again later", file=sys.stderr)

    async def on_server_error(self) -> None:
        print("[error] server reported an error", file=sys.stderr)

    async def on_transport_error(self) -> None:
        print("[error] connection error (possibly blocked)", file=sys.stderr)


def parse_args() -> argparse.Namespace:
    """Parse CLI options for the chat example."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--interests",
        default="",
        help="Comma-separated interests, e.g. 'music, books'.",
    )
    parser.add_argument(
        "--lang",
        default=None,
        help="Matching language (defaults to STRANGER_CHAT_LANGUAGE or 'en').",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Print server statistics before connecting.",
    )
    return parser.parse_args()


async def _read_line() -> str:
    return await asyncio.to_thread(sys.stdin.readline)


async def run_chat(args: argparse.Namespace) -> int:
    """Run an interactive chat session."""
    settings = StrangerChatSettings()
    if args.lang:
        settings = settings.model_copy(update={"language": args.lang})

    async with SessionClient.connect_http(
        settings=settings,
        observer=PrintingObserver(),
        interests=parse_interests(args.interests),
    ) as client:
        if args.status:
            metadata = await client.site_metadata()
            if metadata is not None:
                print(f"[status] {metadata.count} users online")

        try:
            started = await client.start()
        except ChallengeTokenError as exc:
            print(f"[error] could not obtain challenge token: {exc}", file=sys.stderr)
            return 4
        if not started:
            print("[error] could not start a session", file=sys.stderr)
            return 3

        while True:
            line = await _read_line()
            if not line:
                break
            text = line.rstrip("\n")
            if text == "/quit":
                break
            if text == "/next":
                if not await client.next_stranger():
                    print("[error] could not start a new session", file=sys.stderr)
                continue
            if text:
                delivered = await client.send_message(text)
                if not delivered:
                    print("[warn] message may not have been delivered", file=sys.stderr)
    return 0


def main() -> None:
    """CLI entrypoint."""
    args = parse_args()
    try:
        raise SystemExit(asyncio.run(run_chat(args)))
    except KeyboardInterrupt:
        print("\n[interrupt] user left the chat", file=sys.stderr)
        raise SystemExit(130)


if __name__ == "__main__":
    main()
