"""Kubernetes service managers used by the dashboard."""

from kterm.services.kubernetes.action_manager import ActionManager
from kterm.services.kubernetes.resource_manager import ResourceManager, ResourceWatch
from kterm.services.kubernetes.streaming_manager import LogStream, StreamingManager

__all__ = [
    "ActionManager",
    "LogStream",
    "ResourceManager",
    "ResourceWatch",
    "StreamingManager",
]
