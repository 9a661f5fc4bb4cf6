"""Work queues and the manager running controllers on top of kopf."""

from .manager import Controller, Manager, Watch
from .queue import WorkQueue

__all__ = ["Controller", "Manager", "Watch", "WorkQueue"]
