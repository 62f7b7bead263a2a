"""Process-level entry points backed by the default algorithm manager."""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from .algorithms.base import BaseDistance, BaseTransform
from .algorithms.manager import AlgorithmManager, get_manager
from .errors import FatalError
from .pipelines import conversion
from .storage.template import File, FileList, TemplateList
from .utils.timing import time_function

logger = logging.getLogger(__name__)


def _manager(manager: Optional[AlgorithmManager]) -> AlgorithmManager:
    return manager if manager is not None else get_manager()


def is_classifier(algorithm: str, manager: Optional[AlgorithmManager] = None) -> bool:
    """True when ``algorithm`` has no distance and cannot score pairs."""
    return _manager(manager).get_algorithm(algorithm).is_classifier()


@time_function
def train(algorithm: str, input: Any, model: Any = None, manager: Optional[AlgorithmManager] = None) -> None:
    _manager(manager).get_algorithm(algorithm).train(input, model)


@time_function
def enroll(algorithm: str, input: Any, gallery: Any = None, manager: Optional[AlgorithmManager] = None) -> FileList:
    return _manager(manager).get_algorithm(algorithm).enroll(input, gallery)


def enroll_templates(templates: TemplateList, manager: Optional[AlgorithmManager] = None) -> TemplateList:
    """Project templates with the algorithm named in the first template's ``algorithm`` metadata."""
    if not templates:
        return TemplateList()
    name = templates[0].file.get("algorithm")
    if not name:
        raise FatalError("No algorithm set on the first template.")
    logger.debug(f"Enrolling {len(templates)} templates with {name}")
    return _manager(manager).get_algorithm(str(name)).enroll_templates(templates)


@time_function
def compare(
    algorithm: str,
    target: Any,
    query: Any,
    output: Any = None,
    manager: Optional[AlgorithmManager] = None,
) -> List[File]:
    return _manager(manager).get_algorithm(algorithm).compare(target, query, output)


@time_function
def convert(file_type: str, input: Any, output: Any, manager: Optional[AlgorithmManager] = None) -> None:
    conversion.convert(file_type, File.parse(input), File.parse(output), _manager(manager).context)


@time_function
def cat(file_type: str, inputs: Iterable[Any], output: Any, manager: Optional[AlgorithmManager] = None) -> None:
    conversion.cat(
        file_type,
        [File.parse(input) for input in inputs],
        File.parse(output),
        _manager(manager).context,
    )


def transform_from_algorithm(algorithm: str, manager: Optional[AlgorithmManager] = None) -> BaseTransform:
    return _manager(manager).get_algorithm(algorithm).transform


def distance_from_algorithm(algorithm: str, manager: Optional[AlgorithmManager] = None) -> Optional[BaseDistance]:
    return _manager(manager).get_algorithm(algorithm).distance
