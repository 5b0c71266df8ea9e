"""Slash command registration."""

from .register import register_commands

__all__ = ["register_commands"]
