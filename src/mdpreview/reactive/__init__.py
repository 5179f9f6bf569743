"""Reactive layer — from a file change to a browser reload.

Connects watcher events to re-rendering and rebuilding, and fans the
resulting ``reload`` message out to every open browser tab.
"""

from mdpreview.reactive.orchestrator import RELOAD_MESSAGE, PreviewState, ReloadOrchestrator
from mdpreview.reactive.rebuild import RebuildCoordinator, RebuildState, SubprocessRebuild
from mdpreview.reactive.registry import Channel, ConnectionRegistry, QueueChannel

__all__ = [
    "RELOAD_MESSAGE",
    "Channel",
    "ConnectionRegistry",
    "PreviewState",
    "QueueChannel",
    "RebuildCoordinator",
    "RebuildState",
    "ReloadOrchestrator",
    "SubprocessRebuild",
]
