"""Token estimation for chunk budgeting."""

from __future__ import annotations

import math
from typing import Protocol

import tiktoken

from scenario_engine.config.constants import TIKTOKEN_ENCODING
from scenario_engine.config.settings import Settings


class TokenCounter(Protocol):
    def count(self, text: str) -> int: ...


class CharTokenCounter:
    """Roughly 4 characters per token for mixed content."""

    def __init__(self, chars_per_token: int = 4) -> None:
        self._chars_per_token = chars_per_token

    def count(self, text: str) -> int:
        return math.ceil(len(text) / self._chars_per_token)


class TiktokenCounter:
    def __init__(self, encoding: str = TIKTOKEN_ENCODING) -> None:
        self._enc = tiktoken.get_encoding(encoding)

    def count(self, text: str) -> int:
        return len(self._enc.encode(text))


def create_token_counter(settings: Settings) -> TokenCounter:
    if settings.token_estimator == "tiktoken":
        return TiktokenCounter()
    return CharTokenCounter(settings.chars_per_token)
