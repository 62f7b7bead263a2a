"""Process-wide cache of algorithm instances."""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from ..errors import FatalError
from ..runtime.context import ExecutionContext
from .core import AlgorithmCore

logger = logging.getLogger(__name__)


class AlgorithmManager:
    """Thread-safe map of algorithm name to its single shared ``AlgorithmCore``.

    Instances are built outside the lock because building one may look up
    other algorithms by name. Concurrent misses can build duplicate
    candidates; the first one published wins and the others are discarded.
    """

    def __init__(self, context: Optional[ExecutionContext] = None) -> None:
        self.context = context or ExecutionContext()
        self._algorithms: Dict[str, AlgorithmCore] = {}
        self._lock = threading.Lock()

    def get_algorithm(self, name: str) -> AlgorithmCore:
        if not name:
            raise FatalError("No default algorithm set.")

        algorithm = self._algorithms.get(name)
        if algorithm is not None:
            return algorithm

        candidate = AlgorithmCore(name, self.context, manager=self)
        with self._lock:
            registered = self._algorithms.setdefault(name, candidate)
        if registered is candidate:
            logger.debug(f"Registered algorithm: {name}")
        return registered

    def names(self) -> List[str]:
        with self._lock:
            return list(self._algorithms.keys())

    def finalize(self) -> None:
        """Drop every cached instance."""
        with self._lock:
            self._algorithms.clear()

    def __contains__(self, name: str) -> bool:
        return name in self._algorithms

    def __len__(self) -> int:
        return len(self._algorithms)


_default_manager: Optional[AlgorithmManager] = None
_default_lock = threading.Lock()


def get_manager() -> AlgorithmManager:
    """Return the process default manager, creating it on first use."""
    global _default_manager
    with _default_lock:
        if _default_manager is None:
            _default_manager = AlgorithmManager()
        return _default_manager


def set_manager(manager: AlgorithmManager) -> None:
    global _default_manager
    with _default_lock:
        _default_manager = manager


def reset_manager() -> None:
    """Finalize and forget the process default manager."""
    global _default_manager
    with _default_lock:
        if _default_manager is not None:
            _default_manager.finalize()
        _default_manager = None
