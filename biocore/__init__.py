from .errors import FatalError, TemplateFailure
from .runtime import ExecutionContext, ProgressTracker
from .storage import File, FileList, Template, TemplateList
from .algorithms import AlgorithmCore, AlgorithmManager, get_manager, reset_manager, set_manager
from . import api

__all__ = [
    "FatalError",
    "TemplateFailure",
    "ExecutionContext",
    "ProgressTracker",
    "File",
    "FileList",
    "Template",
    "TemplateList",
    "AlgorithmCore",
    "AlgorithmManager",
    "get_manager",
    "set_manager",
    "reset_manager",
    "api",
]
