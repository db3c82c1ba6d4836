"""Rewrite client and prompt composition."""

from .client import ClientSettings, RewriteClient
from .prompts import build_messages, build_system_instruction

__all__ = ["ClientSettings", "RewriteClient", "build_messages", "build_system_instruction"]
