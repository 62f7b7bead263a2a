"""Built-in feature transforms."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional

import numpy as np

from ..errors import FatalError, TemplateFailure
from ..storage.model_io import ModelReader, ModelWriter
from ..storage.template import Template, TemplateList
from .base import BaseTransform, make_transform, register_transform

logger = logging.getLogger(__name__)


def _require_trained_matrix(templates: TemplateList, name: str) -> np.ndarray:
    usable = TemplateList(t for t in templates if not t.file.fte and t.data.size > 0)
    if not usable:
        raise FatalError(f"{name} requires at least one valid training template")
    try:
        return usable.data_matrix().astype(np.float64)
    except ValueError as exc:
        raise FatalError(f"{name} received templates of inconsistent dimension: {exc}") from exc


class IdentityTransform(BaseTransform):
    """Pass payloads through unchanged."""

    def project_template(self, template: Template) -> Template:
        return template.copy()


register_transform("Identity", IdentityTransform)


class NormalizeTransform(BaseTransform):
    """Scale each payload to unit L2 norm; zero vectors fail to enroll."""

    def project_template(self, template: Template) -> Template:
        norm = float(np.linalg.norm(template.data))
        if norm == 0.0:
            raise TemplateFailure("zero-norm payload")
        return Template(template.file.copy(), template.data / norm)


register_transform("Normalize", NormalizeTransform)


class CenterTransform(BaseTransform):
    """Subtract the training mean."""

    def __init__(self, name, context, manager=None, args=(), **kwargs: Any) -> None:
        super().__init__(name, context, manager, args, **kwargs)
        self.mean: Optional[np.ndarray] = None

    def train(self, templates: TemplateList) -> None:
        self.mean = _require_trained_matrix(templates, self.name).mean(axis=0).astype(np.float32)

    def project_template(self, template: Template) -> Template:
        if self.mean is None:
            raise FatalError(f"{self.name} used before training")
        if template.data.shape != self.mean.shape:
            raise TemplateFailure(f"expected {self.mean.shape} payload, got {template.data.shape}")
        return Template(template.file.copy(), template.data - self.mean)

    def store(self, writer: ModelWriter) -> None:
        writer.write_array(self.mean if self.mean is not None else np.zeros(0, dtype=np.float32))

    def load(self, reader: ModelReader) -> None:
        self.mean = reader.read_array().astype(np.float32)


register_transform("Center", CenterTransform)


class PCATransform(BaseTransform):
    """Project onto the leading principal components of the training data.

    ``keep`` is a component count when >= 1, otherwise the fraction of
    variance to retain.
    """

    def __init__(self, name, context, manager=None, args=(), keep: float = 0.95, **kwargs: Any) -> None:
        super().__init__(name, context, manager, args, keep=keep, **kwargs)
        if self.args:
            keep = float(self.args[0])
        if keep <= 0:
            raise FatalError(f"PCA keep must be positive, got {keep}")
        self.keep = keep
        self.mean: Optional[np.ndarray] = None
        self.basis: Optional[np.ndarray] = None

    def train(self, templates: TemplateList) -> None:
        matrix = _require_trained_matrix(templates, self.name)
        mean = matrix.mean(axis=0)
        _, singular_values, vt = np.linalg.svd(matrix - mean, full_matrices=False)

        if self.keep >= 1:
            components = min(int(self.keep), vt.shape[0])
        else:
            energy = singular_values ** 2
            total = energy.sum()
            if total == 0:
                components = 1
            else:
                cumulative = np.cumsum(energy) / total
                components = int(np.searchsorted(cumulative, self.keep) + 1)
            components = min(components, vt.shape[0])

        self.mean = mean.astype(np.float32)
        self.basis = vt[:components].T.astype(np.float32)
        logger.debug(f"{self.name} keeping {components} of {matrix.shape[1]} dimensions")

    def project_template(self, template: Template) -> Template:
        if self.basis is None or self.mean is None:
            raise FatalError(f"{self.name} used before training")
        if template.data.shape != self.mean.shape:
            raise TemplateFailure(f"expected {self.mean.shape} payload, got {template.data.shape}")
        return Template(template.file.copy(), (template.data - self.mean) @ self.basis)

    def store(self, writer: ModelWriter) -> None:
        if self.basis is None or self.mean is None:
            raise FatalError(f"Cannot store untrained {self.name}")
        writer.write_array(self.mean)
        writer.write_array(self.basis)

    def load(self, reader: ModelReader) -> None:
        self.mean = reader.read_array().astype(np.float32)
        self.basis = reader.read_array().astype(np.float32)


register_transform("PCA", PCATransform)


class PipeTransform(BaseTransform):
    """Apply child transforms in sequence; each trains on its predecessor's output."""

    def __init__(self, name, context, manager=None, args=(), **kwargs: Any) -> None:
        super().__init__(name, context, manager, args, **kwargs)
        if not self.args:
            raise FatalError("Pipe requires at least one transform")
        self.transforms: List[BaseTransform] = [make_transform(arg, context, manager) for arg in self.args]

    def train(self, templates: TemplateList) -> None:
        data = templates
        for index, transform in enumerate(self.transforms):
            transform.train(data)
            if index < len(self.transforms) - 1:
                data = transform.project(data)

    def project(self, templates: TemplateList) -> TemplateList:
        data = templates
        for transform in self.transforms:
            data = transform.project(data)
        return data

    def project_template(self, template: Template) -> Template:
        return self.project(TemplateList([template]))[0]

    def store(self, writer: ModelWriter) -> None:
        for transform in self.transforms:
            transform.store(writer)

    def load(self, reader: ModelReader) -> None:
        for transform in self.transforms:
            transform.load(reader)


register_transform("Pipe", PipeTransform)


class DistributeTemplateTransform(BaseTransform):
    """Fan projection of a batch out over ``context.parallelism`` threads.

    Output order matches input order. Training and serialization go straight
    to the wrapped transform.
    """

    def __init__(self, name, context, manager=None, args=(), **kwargs: Any) -> None:
        super().__init__(name, context, manager, args, **kwargs)
        if len(self.args) != 1:
            raise FatalError(f"DistributeTemplate expects one transform, got {self.args}")
        self.transform = make_transform(self.args[0], context, manager)

    def train(self, templates: TemplateList) -> None:
        self.transform.train(templates)

    def project(self, templates: TemplateList) -> TemplateList:
        workers = max(1, self.context.parallelism)
        if workers == 1 or len(templates) <= 1:
            return self.transform.project(templates)

        with ThreadPoolExecutor(max_workers=min(workers, len(templates))) as executor:
            results = executor.map(lambda t: self.transform.project(TemplateList([t])), templates)
            projected = TemplateList()
            for result in results:
                projected.extend(result)
        return projected

    def project_template(self, template: Template) -> Template:
        return self.transform.project(TemplateList([template]))[0]

    def store(self, writer: ModelWriter) -> None:
        self.transform.store(writer)

    def load(self, reader: ModelReader) -> None:
        self.transform.load(reader)


register_transform("DistributeTemplate", DistributeTemplateTransform)


class FromAlgorithmTransform(BaseTransform):
    """Reuse the transform of another registered algorithm.

    The referenced algorithm is looked up by name at construction and carries
    its own trained state, so training and serialization are no-ops here.
    """

    def __init__(self, name, context, manager=None, args=(), **kwargs: Any) -> None:
        super().__init__(name, context, manager, args, **kwargs)
        algorithm = kwargs.get("algorithm") or (self.args[0] if self.args else None)
        if not algorithm:
            raise FatalError("FromAlgorithm requires an algorithm name")
        if manager is None:
            raise FatalError("FromAlgorithm requires an algorithm manager")
        self.algorithm = str(algorithm)
        core = manager.get_algorithm(self.algorithm)
        if core.transform is None:
            raise FatalError(f"Algorithm '{self.algorithm}' has no transform")
        self.transform = core.transform

    def project(self, templates: TemplateList) -> TemplateList:
        return self.transform.project(templates)

    def project_template(self, template: Template) -> Template:
        return self.transform.project(TemplateList([template]))[0]


register_transform("FromAlgorithm", FromAlgorithmTransform)
