"""A named pairing of a feature transform and an optional comparison distance."""
from __future__ import annotations

import logging
import os
from typing import Any, List, Optional, Set, Tuple, TYPE_CHECKING

from ..errors import FatalError
from ..pipelines import comparison, enrollment
from ..runtime.context import ExecutionContext
from ..storage.gallery import BaseGallery, make_gallery
from ..storage.model_io import ModelWriter, read_model_file, write_model_file
from ..storage.template import File, FileList, TemplateList
from ..utils.timing import Timer
from .base import BaseDistance, BaseTransform, make_distance, make_transform
from .descriptor import parse_algorithm

if TYPE_CHECKING:  # pragma: no cover
    from .manager import AlgorithmManager

logger = logging.getLogger(__name__)

# Suffixes that already denote enrolled templates
GALLERY_SUFFIXES = ("gal", "mem", "template")


class AlgorithmCore:
    """Owns one transform and at most one distance.

    The descriptor is resolved in order: a pre-built model under
    ``context.model_dir``, an existing model file, an abbreviation, and
    finally a ``featureSpec[:distanceSpec]`` description.
    """

    def __init__(
        self,
        name: str,
        context: Optional[ExecutionContext] = None,
        manager: Optional["AlgorithmManager"] = None,
    ) -> None:
        self.name = name
        self.context = context or ExecutionContext()
        self.manager = manager
        self.transform: Optional[BaseTransform] = None
        self.distance: Optional[BaseDistance] = None
        self._init(File.parse(name), set())
        if self.transform is None:
            raise FatalError(f"Null transform for algorithm '{name}'.")

    # ------------------------------------------------------------------
    # Descriptor resolution
    # ------------------------------------------------------------------
    def _prebuilt_model(self, description: File) -> Optional[str]:
        if not description.name or os.path.isabs(description.name):
            return None
        candidate = os.path.join(self.context.model_dir, description.name)
        return candidate if os.path.isfile(candidate) else None

    def _expand(self, description: File, seen: Set[str]) -> File:
        """Follow abbreviations until a non-abbreviated descriptor remains."""
        abbreviations = self.context.abbreviations
        while description.flat() in abbreviations or description.name in abbreviations:
            key = description.flat() if description.flat() in abbreviations else description.name
            if key in seen:
                raise FatalError(f"Recursive abbreviation '{key}'")
            seen.add(key)
            expanded = File.parse(abbreviations[key])
            # Options on the abbreviation apply to its expansion
            for option, value in description.metadata.items():
                expanded.metadata.setdefault(option, value)
            description = expanded
        return description

    def _init(self, description: File, seen: Set[str]) -> None:
        prebuilt = self._prebuilt_model(description)
        if prebuilt is not None:
            logger.debug(f"Loading pre-built {prebuilt}")
            self.load(prebuilt)
            return

        if description.exists():
            logger.debug(f"Loading {description.file_name()}")
            self.load(description.name)
            return

        abbreviations = self.context.abbreviations
        if description.flat() in abbreviations or description.name in abbreviations:
            self._init(self._expand(description, seen), seen)
            return

        self._build(description)

    def _build(self, description: File) -> None:
        feature, distance = parse_algorithm(description)
        self.transform = make_transform(feature, self.context, self.manager)
        self.distance = make_distance(distance, self.context, self.manager) if distance else None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def is_classifier(self) -> bool:
        return self.distance is None

    def train(self, input: Any, model: Any = None) -> None:
        """Train the transform, then the distance on projected data, and optionally store."""
        input_file = File.parse(input)
        model_file = File.parse(model) if model else File()
        logger.info(
            f"Training on {input_file.flat()}"
            + ("" if model_file.is_null() else f" to {model_file.flat()}")
        )

        data = TemplateList.from_gallery(input_file, self.context)

        # Lets transforms distinguish train-time from enroll-time projection
        for template in data:
            template.file.set("train", True)

        if self.transform is None:
            raise FatalError("Null transform.")
        logger.info(f"{len(data)} training files")

        with Timer("Training"):
            logger.debug("Training enrollment")
            self.transform.train(data)

            if self.distance is not None:
                logger.debug("Projecting enrollment")
                projected = self.transform.project(data)

                logger.debug("Training comparison")
                self.distance.train(projected)

            if not model_file.is_null():
                logger.info(f"Storing {model_file.file_name()}")
                self.store(model_file.name)

    def enroll_templates(self, templates: TemplateList) -> TemplateList:
        """Project templates in memory without touching any gallery."""
        if self.transform is None:
            raise FatalError("Null transform.")
        return self.transform.project(TemplateList(templates))

    def enroll(self, input: Any, gallery: Any = None) -> FileList:
        return enrollment.enroll(self, File.parse(input), File.parse(gallery) if gallery else File(), self.context)

    def compare(self, target: Any, query: Any, output: Any = None) -> List[File]:
        return comparison.compare(
            self,
            File.parse(target),
            File.parse(query),
            File.parse(output) if output else File(),
            self.context,
        )

    def get_memory_gallery(self, file: File) -> File:
        """Key of the implicit gallery caching enrollment results for ``file``."""
        return File(self.name + file.base_name() + file.hash() + ".mem")

    def retrieve_or_enroll(self, file: File) -> Tuple[BaseGallery, FileList]:
        if not file.get_bool("enroll") and file.suffix() in GALLERY_SUFFIXES:
            gallery = make_gallery(file, self.context)
            return gallery, gallery.files()

        # Reuse an earlier in-process enrollment of the same input
        memory_gallery = self.get_memory_gallery(file)
        gallery = make_gallery(memory_gallery, self.context)
        files = gallery.files()
        if files:
            return gallery, files

        self.enroll(file)
        gallery = make_gallery(memory_gallery, self.context)
        return gallery, gallery.files()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def store(self, model: str) -> None:
        if self.transform is None:
            raise FatalError("Null transform.")
        writer = ModelWriter()
        writer.write_string(self.name)
        self.transform.store(writer)
        has_distance = self.distance is not None
        writer.write_bool(has_distance)
        if has_distance:
            self.distance.store(writer)
        write_model_file(model, writer)

    def load(self, model: str) -> None:
        reader = read_model_file(model)
        self.name = reader.read_string()
        self._build(self._expand(File.parse(self.name), set()))
        self.transform.load(reader)

        has_distance = reader.read_bool()
        if has_distance:
            if self.distance is None:
                raise FatalError(f"Model {model} stores a distance but '{self.name}' has none")
            self.distance.load(reader)
        elif self.distance is not None:
            logger.warning(f"Model {model} has no trained distance for '{self.name}'")

    def __str__(self) -> str:
        return f"{self.name} (classifier={self.is_classifier()})"
