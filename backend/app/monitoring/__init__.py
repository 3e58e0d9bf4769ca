"""Metrics exposed by the chat backend."""

from . import metrics, registry

__all__ = ["metrics", "registry"]
