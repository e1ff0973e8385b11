"""Terminal client for a Gemini Live proxy.

Usage:
  export GEMINI_LIVE_PROJECT_ID=my-project
  gemini-live --proxy-url ws://localhost:8080 --token "$(gcloud auth print-access-token)"

Each line typed on stdin is sent as one user turn.  Model text and
transcripts are printed as they arrive; audio frames are counted but not
played.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from .live.connection import LiveConnection, LiveConnectionError
from .live.protocol import ClassifiedMessage, MessageKind
from .settings import Settings


logger = logging.getLogger("gemini-live")


class ConsoleSession:
    """Prints classified messages and remembers the latest resumption handle."""

    def __init__(self, connection: LiveConnection, out=None) -> None:
        self.connection = connection
        self.out = out or sys.stdout
        self.audio_frames = 0
        self.ended = asyncio.Event()
        self.started = asyncio.Event()
        connection.on_receive_response = self.on_receive_response
        connection.on_connection_started = self.on_connection_started
        connection.on_error_message = self.on_error_message

    def on_connection_started(self) -> None:
        self.started.set()
        print("Connected. Type a message and press enter.", file=self.out)

    def on_receive_response(self, message: ClassifiedMessage) -> None:
        if message.kind is MessageKind.SETUP_COMPLETE:
            print("[setup complete]", file=self.out)
        elif message.kind is MessageKind.TEXT:
            print(f"model: {message.payload}", file=self.out)
        elif message.kind is MessageKind.AUDIO:
            self.audio_frames += 1
        elif message.kind is MessageKind.RESUMPTION:
            # Replayed by the next connect() on this connection.
            self.connection.set_resumption(True, message.payload)
        elif message.kind is MessageKind.INPUT_TRANSCRIPTION:
            print(f"you (heard): {message.payload}", file=self.out)
        elif message.kind is MessageKind.OUTPUT_TRANSCRIPTION:
            print(f"model (said): {message.payload}", file=self.out)
        if message.turn_complete:
            print("[turn complete]", file=self.out)

    def on_error_message(self, message: str) -> None:
        print(message, file=sys.stderr)
        if self.connection.state.terminal:
            self.ended.set()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gemini Live proxy console client")
    parser.add_argument("--proxy-url", default=None, help="ws:// or wss:// URL of the proxy")
    parser.add_argument("--project-id", default=None, help="Google Cloud project id")
    parser.add_argument("--model", default=None, help="Live model name")
    parser.add_argument("--token", default=None, help="Access token (overrides GEMINI_LIVE_ACCESS_TOKEN)")
    parser.add_argument("--text-only", action="store_true", help="Request TEXT responses instead of AUDIO")
    parser.add_argument("--debug", action="store_true", help="Log every frame")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    overrides = {
        "proxy_url": args.proxy_url,
        "project_id": args.project_id,
        "model": args.model,
        "access_token": args.token,
    }
    values = {key: value for key, value in overrides.items() if value is not None}
    if args.text_only:
        values["response_modalities"] = ["TEXT"]
    return Settings(**values)


async def _read_line() -> str:
    return await asyncio.to_thread(sys.stdin.readline)


async def run(settings: Settings) -> int:
    connection = LiveConnection.from_settings(settings)
    session = ConsoleSession(connection)
    await connection.connect(settings.access_token)
    if not session.started.is_set():
        return 1

    return_code = 0
    ended = asyncio.create_task(session.ended.wait())
    try:
        while not session.ended.is_set():
            line_task = asyncio.create_task(_read_line())
            done, _ = await asyncio.wait({line_task, ended}, return_when=asyncio.FIRST_COMPLETED)
            if ended in done:
                # The blocked stdin read keeps the executor alive until it returns.
                print("Press enter to exit.", file=sys.stderr)
                line_task.cancel()
                break
            line = line_task.result()
            if not line:
                break
            text = line.strip()
            if text:
                try:
                    await connection.send_text_message(text)
                except LiveConnectionError as exc:
                    print(exc, file=sys.stderr)
                    return_code = 1
                    break
    finally:
        ended.cancel()
        await connection.disconnect()
    logger.info("Session ended after %d audio frames", session.audio_frames)
    return return_code


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = build_settings(args)
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}", file=sys.stderr)
        return 2
    level = logging.DEBUG if args.debug else getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    if not settings.access_token:
        print("Access token missing: use --token or set GEMINI_LIVE_ACCESS_TOKEN", file=sys.stderr)
        return 2
    return asyncio.run(run(settings))


if __name__ == "__main__":
    raise SystemExit(main())
