"""Built-in comparison distances. Scores are similarities: higher means closer."""
from __future__ import annotations

import logging
from typing import Any

import numpy as np

from ..errors import FatalError
from ..storage.model_io import ModelReader, ModelWriter
from ..storage.output import BaseOutput
from ..storage.template import TemplateList
from ..utils.vector_utils import similarity_matrix
from .base import BaseDistance, make_distance, register_distance

logger = logging.getLogger(__name__)


class MetricDistance(BaseDistance):
    """Stateless distance backed by :func:`similarity_matrix`."""

    metric = "l2"

    def similarity(self, targets: np.ndarray, queries: np.ndarray) -> np.ndarray:
        if targets.shape[1] != queries.shape[1]:
            raise FatalError(
                f"{self.name} cannot compare {queries.shape[1]}-d queries with {targets.shape[1]}-d targets"
            )
        return similarity_matrix(queries, targets, metric=self.metric)


class L2Distance(MetricDistance):
    """Negated Euclidean distance."""

    metric = "l2"


class CosineDistance(MetricDistance):
    metric = "cosine"


class DotDistance(MetricDistance):
    metric = "dot"


register_distance("L2", L2Distance)
register_distance("Cosine", CosineDistance)
register_distance("Dot", DotDistance)


class ZScoreDistance(BaseDistance):
    """Standardise the scores of a wrapped distance.

    Training scores every distinct pair of training templates with the wrapped
    distance and keeps the mean and standard deviation.
    """

    def __init__(self, name, context, manager=None, args=(), **kwargs: Any) -> None:
        super().__init__(name, context, manager, args, **kwargs)
        inner = kwargs.get("distance") or (self.args[0] if self.args else "L2")
        self.distance = make_distance(str(inner), context, manager)
        self.mean = 0.0
        self.std = 1.0

    def train(self, templates: TemplateList) -> None:
        self.distance.train(templates)
        scores = self.distance.compare_templates(templates, templates)
        off_diagonal = ~np.eye(scores.shape[0], dtype=bool)
        values = scores[off_diagonal]
        values = values[np.isfinite(values)]
        if values.size == 0:
            raise FatalError(f"{self.name} requires at least two valid training templates")
        self.mean = float(values.mean())
        std = float(values.std())
        self.std = std if std > 0 else 1.0
        logger.debug(f"{self.name} score mean={self.mean:.4g} std={self.std:.4g}")

    def similarity(self, targets: np.ndarray, queries: np.ndarray) -> np.ndarray:
        raw = self.distance.similarity(targets, queries)
        return ((raw - self.mean) / self.std).astype(np.float32)

    def store(self, writer: ModelWriter) -> None:
        self.distance.store(writer)
        writer.write_float(self.mean)
        writer.write_float(self.std)

    def load(self, reader: ModelReader) -> None:
        self.distance.load(reader)
        self.mean = reader.read_float()
        self.std = reader.read_float()


register_distance("ZScore", ZScoreDistance)


class FromAlgorithmDistance(BaseDistance):
    """Reuse the distance of another registered algorithm."""

    def __init__(self, name, context, manager=None, args=(), **kwargs: Any) -> None:
        super().__init__(name, context, manager, args, **kwargs)
        algorithm = kwargs.get("algorithm") or (self.args[0] if self.args else None)
        if not algorithm:
            raise FatalError("FromAlgorithm requires an algorithm name")
        if manager is None:
            raise FatalError("FromAlgorithm requires an algorithm manager")
        self.algorithm = str(algorithm)
        core = manager.get_algorithm(self.algorithm)
        if core.distance is None:
            raise FatalError(f"Algorithm '{self.algorithm}' has no distance")
        self.distance = core.distance

    def similarity(self, targets: np.ndarray, queries: np.ndarray) -> np.ndarray:
        return self.distance.similarity(targets, queries)

    def compare(self, targets: TemplateList, queries: TemplateList, output: BaseOutput) -> None:
        self.distance.compare(targets, queries, output)


register_distance("FromAlgorithm", FromAlgorithmDistance)
