"""Base prompt / seed message loader with mtime-based cache."""

from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import Any

import yaml

from chatstream.core.models import BasePrompt, Message
from chatstream.util.logger import logger

_CACHE_LOCK = Lock()
_CACHE: dict[str, tuple[int, BasePrompt]] = {}


def _parse_messages(raw: Any, source: Path) -> tuple[Message, ...]:
    if raw is None:
        return ()
    if isinstance(raw, dict):
        raw = raw.get("messages") or []
    if not isinstance(raw, list):
        raise ValueError(f"prompt file must be a list or a mapping with 'messages': {source}")
    messages: list[Message] = []
    for index, item in enumerate(raw):
        if isinstance(item, str):
            messages.append(Message.user(item))
            continue
        if not isinstance(item, dict):
            raise ValueError(f"invalid message entry #{index} in {source}")
        messages.append(Message(role=item.get("role", "user"), content=str(item.get("content", ""))))
    return tuple(messages)


def load_base_prompt(path: str | Path | None) -> BasePrompt:
    """Load a YAML prompt file. A missing or empty path yields an empty prompt."""
    if not path or not str(path).strip():
        return BasePrompt()
    prompt_path = Path(path).expanduser()
    if not prompt_path.exists():
        logger.info("prompt file not found, using empty prompt path=%s", prompt_path)
        return BasePrompt()

    key = str(prompt_path.resolve())
    mtime_ns = prompt_path.stat().st_mtime_ns
    with _CACHE_LOCK:
        cached = _CACHE.get(key)
        if cached is not None and cached[0] == mtime_ns:
            return cached[1]
        raw = yaml.safe_load(prompt_path.read_text(encoding="utf-8"))
        prompt = BasePrompt(messages=_parse_messages(raw, prompt_path))
        _CACHE[key] = (mtime_ns, prompt)
    logger.info("prompt file loaded path=%s messages=%d", prompt_path, len(prompt.messages))
    return prompt


def load_seed_messages(path: str | Path | None) -> list[Message]:
    return list(load_base_prompt(path).messages)
