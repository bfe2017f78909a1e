"""Continuation provider adapter and prompts."""

from .client import ClientSettings, ContinuationClient
from .prompts import build_continuation_prompt

__all__ = ["ClientSettings", "ContinuationClient", "build_continuation_prompt"]
