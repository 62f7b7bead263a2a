"""Transform and distance plugin interfaces with their name-keyed factories."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Type, TYPE_CHECKING

import numpy as np

from ..errors import FatalError, TemplateFailure
from ..runtime.context import ExecutionContext
from ..storage.model_io import ModelReader, ModelWriter
from ..storage.output import BaseOutput
from ..storage.template import Template, TemplateList
from .descriptor import parse_plugin_spec, split_pipe

if TYPE_CHECKING:  # pragma: no cover
    from .manager import AlgorithmManager

logger = logging.getLogger(__name__)


class BaseTransform(ABC):
    """Base class for feature-extraction stages."""

    def __init__(
        self,
        name: str,
        context: ExecutionContext,
        manager: Optional["AlgorithmManager"] = None,
        args: Sequence[str] = (),
        **kwargs: Any,
    ) -> None:
        self.name = name
        self.context = context
        self.manager = manager
        self.args = list(args)
        self.params = kwargs

    def train(self, templates: TemplateList) -> None:
        """Fit the stage to training data. Stateless stages ignore this."""

    @abstractmethod
    def project_template(self, template: Template) -> Template:
        """Project a single record. Raise ``TemplateFailure`` to mark it failed."""

    def project(self, templates: TemplateList) -> TemplateList:
        projected = TemplateList()
        for template in templates:
            if template.file.fte:
                projected.append(template.copy())
                continue
            try:
                projected.append(self.project_template(template))
            except TemplateFailure as exc:
                logger.debug(f"{self.name} failed to enroll {template.file.name}: {exc}")
                failed = Template(template.file.copy())
                failed.file.fte = True
                projected.append(failed)
        return projected

    def store(self, writer: ModelWriter) -> None:
        """Serialize trained state."""

    def load(self, reader: ModelReader) -> None:
        """Restore state written by ``store``."""


class BaseDistance(ABC):
    """Base class for comparison stages producing similarity scores."""

    def __init__(
        self,
        name: str,
        context: ExecutionContext,
        manager: Optional["AlgorithmManager"] = None,
        args: Sequence[str] = (),
        **kwargs: Any,
    ) -> None:
        self.name = name
        self.context = context
        self.manager = manager
        self.args = list(args)
        self.params = kwargs

    def train(self, templates: TemplateList) -> None:
        """Fit the metric to projected training data. Stateless metrics ignore this."""

    @abstractmethod
    def similarity(self, targets: np.ndarray, queries: np.ndarray) -> np.ndarray:
        """Score every query row against every target row, shape ``(n_queries, n_targets)``."""

    def compare_templates(self, targets: TemplateList, queries: TemplateList) -> np.ndarray:
        """Score matrix for two template lists; pairs involving a failed record get ``-inf``."""
        scores = np.full((len(queries), len(targets)), -np.inf, dtype=np.float32)
        target_rows = [i for i, t in enumerate(targets) if not t.file.fte and t.data.size > 0]
        query_rows = [i for i, t in enumerate(queries) if not t.file.fte and t.data.size > 0]
        if not target_rows or not query_rows:
            return scores

        target_matrix = TemplateList(targets[i] for i in target_rows).data_matrix()
        query_matrix = TemplateList(queries[i] for i in query_rows).data_matrix()
        scores[np.ix_(query_rows, target_rows)] = self.similarity(target_matrix, query_matrix)
        return scores

    def compare(self, targets: TemplateList, queries: TemplateList, output: BaseOutput) -> None:
        scores = self.compare_templates(targets, queries)
        for query_offset in range(scores.shape[0]):
            for target_offset in range(scores.shape[1]):
                output.set_relative(float(scores[query_offset, target_offset]), query_offset, target_offset)

    def store(self, writer: ModelWriter) -> None:
        """Serialize trained state."""

    def load(self, reader: ModelReader) -> None:
        """Restore state written by ``store``."""


TRANSFORM_REGISTRY: Dict[str, Type[BaseTransform]] = {}
DISTANCE_REGISTRY: Dict[str, Type[BaseDistance]] = {}


def register_transform(name: str, cls: Type[BaseTransform]) -> None:
    TRANSFORM_REGISTRY[name] = cls


def register_distance(name: str, cls: Type[BaseDistance]) -> None:
    DISTANCE_REGISTRY[name] = cls


def get_transform_class(name: str) -> Type[BaseTransform]:
    if name not in TRANSFORM_REGISTRY:
        raise FatalError(f"Unknown transform type '{name}'. Available: {list(TRANSFORM_REGISTRY.keys())}")
    return TRANSFORM_REGISTRY[name]


def get_distance_class(name: str) -> Type[BaseDistance]:
    if name not in DISTANCE_REGISTRY:
        raise FatalError(f"Unknown distance type '{name}'. Available: {list(DISTANCE_REGISTRY.keys())}")
    return DISTANCE_REGISTRY[name]


def make_transform(
    description: str,
    context: ExecutionContext,
    manager: Optional["AlgorithmManager"] = None,
) -> BaseTransform:
    """Instantiate a transform from its spec; ``A+B`` builds a ``Pipe``."""
    stages = split_pipe(description)
    if len(stages) > 1:
        return get_transform_class("Pipe")("Pipe", context, manager, args=stages)

    spec = parse_plugin_spec(description)
    transform_cls = get_transform_class(spec.name)
    return transform_cls(spec.name, context, manager, args=spec.args, **spec.kwargs)


def make_distance(
    description: str,
    context: ExecutionContext,
    manager: Optional["AlgorithmManager"] = None,
) -> BaseDistance:
    spec = parse_plugin_spec(description)
    distance_cls = get_distance_class(spec.name)
    return distance_cls(spec.name, context, manager, args=spec.args, **spec.kwargs)
