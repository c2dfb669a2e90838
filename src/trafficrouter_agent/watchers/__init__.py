"""Watcher implementations used by the traffic-router agent."""

from .file import FileRolloutWatcher  # noqa: F401

__all__ = ["FileRolloutWatcher"]
