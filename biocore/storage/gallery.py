"""Streaming template stores addressed by file suffix."""
from __future__ import annotations

import logging
import os
import pickle
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple, Type

import numpy as np
import pandas as pd

from ..errors import FatalError
from ..runtime.context import ExecutionContext
from .template import File, FileList, Template, TemplateList

logger = logging.getLogger(__name__)


class BaseGallery(ABC):
    """Base class for galleries.

    A gallery is read as a sequence of blocks of at most ``context.block_size``
    templates. ``read_block`` reports ``done`` with the final block; ``rewind``
    restarts the stream so the same handle can serve repeated full passes.
    """

    def __init__(self, file: File, context: ExecutionContext) -> None:
        self.file = file
        self.context = context
        self.block_size = context.block_size
        self._written = False

    @abstractmethod
    def read_block(self) -> Tuple[TemplateList, bool]:
        """Return the next block of templates and whether the stream is exhausted."""

    @abstractmethod
    def rewind(self) -> None:
        """Restart reading from the first template."""

    @abstractmethod
    def _append(self, templates: TemplateList) -> None:
        """Append templates to the backing store."""

    @abstractmethod
    def _truncate(self) -> None:
        """Drop existing contents before the first write."""

    def write_block(self, templates: TemplateList) -> None:
        if not self._written:
            self._written = True
            if not any(self.file.get_bool(mode) for mode in ("read", "cache", "append", "noDuplicates")):
                self._truncate()
        self._append(TemplateList(templates))

    def files(self) -> FileList:
        """Existing record handles, without their payloads."""
        self.rewind()
        result = FileList()
        done = False
        while not done:
            block, done = self.read_block()
            result.extend(block.files())
        self.rewind()
        return result

    def read_all(self) -> TemplateList:
        self.rewind()
        result = TemplateList()
        done = False
        while not done:
            block, done = self.read_block()
            result.extend(block)
        self.rewind()
        return result

    def close(self) -> None:
        pass

    def __enter__(self) -> "BaseGallery":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class _SnapshotGallery(BaseGallery):
    """Gallery read block by block through an index window over its records."""

    def __init__(self, file: File, context: ExecutionContext) -> None:
        super().__init__(file, context)
        self._cursor = 0

    @abstractmethod
    def _window(self, start: int, stop: int) -> Tuple[List[Template], int]:
        """Records ``[start, stop)`` of the backing store and its current record count."""

    def read_block(self) -> Tuple[TemplateList, bool]:
        records, total = self._window(self._cursor, self._cursor + self.block_size)
        block = TemplateList(t.copy() for t in records)
        self._cursor += len(block)
        return block, self._cursor >= total

    def rewind(self) -> None:
        self._cursor = 0


class MemoryGallery(_SnapshotGallery):
    """Process-wide in-memory gallery keyed by name (``*.mem``)."""

    _store: Dict[str, TemplateList] = {}
    _lock = threading.Lock()

    def _window(self, start: int, stop: int) -> Tuple[List[Template], int]:
        with self._lock:
            records = self._store.get(self.file.name, ())
            return records[start:stop], len(records)

    def _append(self, templates: TemplateList) -> None:
        with self._lock:
            self._store.setdefault(self.file.name, TemplateList()).extend(t.copy() for t in templates)

    def _truncate(self) -> None:
        with self._lock:
            self._store.pop(self.file.name, None)

    @classmethod
    def put(cls, name: str, templates: TemplateList) -> None:
        """Replace the contents stored under ``name``."""
        with cls._lock:
            cls._store[name] = TemplateList(t.copy() for t in templates)

    @classmethod
    def has_records(cls, name: str) -> bool:
        with cls._lock:
            return bool(cls._store.get(name))

    @classmethod
    def clear(cls) -> None:
        with cls._lock:
            cls._store.clear()


class BinaryGallery(BaseGallery):
    """On-disk gallery of pickled ``(descriptor, payload)`` records (``*.gal``)."""

    def __init__(self, file: File, context: ExecutionContext) -> None:
        super().__init__(file, context)
        self._handle = None

    def _open_for_read(self):
        if self._handle is None:
            self._handle = open(self.file.name, "rb")
        return self._handle

    def read_block(self) -> Tuple[TemplateList, bool]:
        if not os.path.exists(self.file.name):
            return TemplateList(), True

        handle = self._open_for_read()
        size = os.fstat(handle.fileno()).st_size
        block = TemplateList()
        while len(block) < self.block_size and handle.tell() < size:
            try:
                descriptor, payload = pickle.load(handle)
            except (EOFError, pickle.UnpicklingError) as exc:
                raise FatalError(f"Corrupt gallery {self.file.name}: {exc}") from exc
            block.append(Template(File.parse(descriptor), payload))

        done = handle.tell() >= size
        return block, done

    def rewind(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def _append(self, templates: TemplateList) -> None:
        self.rewind()
        directory = os.path.dirname(self.file.name)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.file.name, "ab") as handle:
            for template in templates:
                pickle.dump((template.file.flat(), template.data), handle, protocol=pickle.HIGHEST_PROTOCOL)

    def _truncate(self) -> None:
        self.rewind()
        if os.path.exists(self.file.name):
            os.remove(self.file.name)

    def close(self) -> None:
        self.rewind()


class CsvGallery(_SnapshotGallery):
    """Tabular gallery backed by pandas (``*.csv``).

    Columns ``name``, ``label`` and ``fte`` are identity metadata; every other
    numeric column is a feature. Failed records are written with empty features.
    """

    META_COLUMNS = ("name", "label", "fte")

    def __init__(self, file: File, context: ExecutionContext) -> None:
        super().__init__(file, context)
        self._cache: Optional[List[Template]] = None

    def _window(self, start: int, stop: int) -> Tuple[List[Template], int]:
        records = self._records()
        return records[start:stop], len(records)

    def _records(self) -> List[Template]:
        if self._cache is None:
            self._cache = self._load()
        return self._cache

    def _load(self) -> List[Template]:
        if not os.path.exists(self.file.name) or os.path.getsize(self.file.name) == 0:
            return []
        frame = pd.read_csv(self.file.name)
        feature_columns = [
            column for column in frame.columns
            if column not in self.META_COLUMNS and pd.api.types.is_numeric_dtype(frame[column])
        ]
        templates: List[Template] = []
        for row_index, record in enumerate(frame.to_dict("records")):
            name = record.get("name")
            if name is None or (isinstance(name, float) and np.isnan(name)):
                name = f"{self.file.name}#{row_index}"
            record_file = File(str(name))
            label = record.get("label")
            if label is not None and not (isinstance(label, float) and np.isnan(label)):
                record_file.set("label", label)
            fte = record.get("fte")
            if fte is not None and not pd.isna(fte) and bool(fte):
                record_file.fte = True
            features = np.asarray([record[column] for column in feature_columns], dtype=np.float32)
            templates.append(Template(record_file, features[~np.isnan(features)]))
        return templates

    def _append(self, templates: TemplateList) -> None:
        rows = []
        for template in templates:
            row = {
                "name": template.file.name,
                "label": template.file.label,
                "fte": template.file.fte,
            }
            for index, value in enumerate(template.data.ravel()):
                row[f"f{index}"] = float(value)
            rows.append(row)

        existing = pd.read_csv(self.file.name) if os.path.exists(self.file.name) and os.path.getsize(self.file.name) > 0 else None
        frame = pd.DataFrame(rows)
        if existing is not None:
            frame = pd.concat([existing, frame], ignore_index=True)
        frame.to_csv(self.file.name, index=False)
        self._cache = None

    def _truncate(self) -> None:
        if os.path.exists(self.file.name):
            os.remove(self.file.name)
        self._cache = None


class NumpyGallery(_SnapshotGallery):
    """Read-only gallery over a 2-D ``.npy`` matrix, one record per row."""

    def __init__(self, file: File, context: ExecutionContext) -> None:
        super().__init__(file, context)
        self._cache: Optional[List[Template]] = None

    def _window(self, start: int, stop: int) -> Tuple[List[Template], int]:
        records = self._records()
        return records[start:stop], len(records)

    def _records(self) -> List[Template]:
        if self._cache is None:
            if not os.path.exists(self.file.name):
                raise FatalError(f"Missing input matrix {self.file.name}")
            matrix = np.load(self.file.name, allow_pickle=False)
            if matrix.ndim == 1:
                matrix = matrix.reshape(1, -1)
            self._cache = [
                Template(File(f"{self.file.name}#{row}"), matrix[row])
                for row in range(matrix.shape[0])
            ]
        return self._cache

    def _append(self, templates: TemplateList) -> None:
        raise FatalError(f"NumpyGallery {self.file.name} is read-only")

    def _truncate(self) -> None:
        raise FatalError(f"NumpyGallery {self.file.name} is read-only")


GALLERY_REGISTRY: Dict[str, Type[BaseGallery]] = {}


def register_gallery(suffix: str, cls: Type[BaseGallery]) -> None:
    GALLERY_REGISTRY[suffix] = cls


def get_gallery_class(suffix: str) -> Type[BaseGallery]:
    if suffix not in GALLERY_REGISTRY:
        raise FatalError(f"Unknown gallery type '{suffix}'. Available: {list(GALLERY_REGISTRY.keys())}")
    return GALLERY_REGISTRY[suffix]


def make_gallery(file: File, context: ExecutionContext) -> BaseGallery:
    """Instantiate the gallery registered for ``file``'s suffix."""
    gallery_cls = get_gallery_class(file.suffix())
    return gallery_cls(file, context)


register_gallery("mem", MemoryGallery)
register_gallery("gal", BinaryGallery)
register_gallery("csv", CsvGallery)
register_gallery("npy", NumpyGallery)
