from .context import ExecutionContext
from .progress import ProgressTracker

__all__ = [
    "ExecutionContext",
    "ProgressTracker",
]
