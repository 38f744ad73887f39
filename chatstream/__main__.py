"""
交互式命令行聊天：python -m chatstream [--provider ollama --model llama3]
每行输入作为一次提问；/reset 清空历史，/models 刷新并列出模型，/quit 退出。
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from chatstream.config.settings import settings
from chatstream.core.errors import ConfigurationError
from chatstream.core.session import ChatSession, create_session
from chatstream.util.logger import logger, set_level

_COMMANDS = ("/reset", "/models", "/quit")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chatstream", description="Chat with an LLM provider from the terminal.")
    parser.add_argument("--provider", default=None, help=f"openai, ollama or gemini (default: {settings.provider})")
    parser.add_argument("--model", default=None, help="Model name (default: CHATSTREAM_MODEL)")
    parser.add_argument("--base-url", default=None, help="Override the provider base URL")
    parser.add_argument("--no-stream", action="store_true", help="Wait for the whole reply instead of streaming")
    parser.add_argument("--prompt-file", default=None, help="YAML base prompt prepended to every request")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    return parser


def _attach_console(session: ChatSession) -> None:
    session.on_partial_response.subscribe(lambda text: print(text, end="", flush=True))
    session.on_error.subscribe(lambda text: print(f"\n[error] {text}", file=sys.stderr, flush=True))


async def _handle_command(session: ChatSession, command: str) -> None:
    if command == "/reset":
        session.reset_history()
        print("[history cleared]")
        return
    if command == "/models":
        for name in await session.refresh_models():
            print(name)


async def chat_loop(session: ChatSession) -> None:
    _attach_console(session)
    loop = asyncio.get_running_loop()
    while True:
        print("> ", end="", flush=True)
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            break
        text = line.strip()
        if text == "/quit":
            break
        if text in _COMMANDS:
            await _handle_command(session, text)
            continue
        response = await session.prompt_async(text)
        if response is None or response.failed:
            continue
        if session.stream:
            print()
        else:
            print(response.response)


async def run(args: argparse.Namespace) -> int:
    try:
        session = create_session(
            provider=args.provider,
            model=args.model,
            base_url=args.base_url,
            stream=False if args.no_stream else None,
            base_prompt_path=args.prompt_file,
        )
    except ConfigurationError as exc:
        logger.error("configuration error: %s", exc)
        return 2
    async with session:
        await chat_loop(session)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_level("debug")
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
