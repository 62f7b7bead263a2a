"""Score sinks for the comparison pipeline, addressed by file suffix."""
from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple, Type

import numpy as np
import pandas as pd

from ..errors import FatalError
from ..runtime.context import ExecutionContext
from .template import File, FileList

logger = logging.getLogger(__name__)


class BaseOutput(ABC):
    """Base class for outputs.

    Rows are queries and columns are targets. ``set_block`` selects the block
    pair being compared; ``set_relative`` then addresses a score by its offset
    inside that block. A block spans ``block_rows`` queries and
    ``block_columns`` targets of this output's coordinate system.
    """

    def __init__(self, file: File, context: ExecutionContext) -> None:
        self.file = file
        self.context = context
        self.target_files = FileList()
        self.query_files = FileList()
        self.block_rows = context.block_size
        self.block_columns = context.block_size
        self.row_offset = 0
        self.column_offset = 0

    def initialize(
        self,
        target_files: FileList,
        query_files: FileList,
        block_rows: Optional[int] = None,
        block_columns: Optional[int] = None,
    ) -> None:
        self.target_files = FileList(target_files)
        self.query_files = FileList(query_files)
        if block_rows is not None:
            self.block_rows = block_rows
        if block_columns is not None:
            self.block_columns = block_columns

    def set_block(self, query_block: int, target_block: int) -> None:
        self.row_offset = query_block * self.block_rows
        self.column_offset = target_block * self.block_columns

    def set_relative(self, value: float, query_offset: int, target_offset: int) -> None:
        self.set_absolute(value, self.row_offset + query_offset, self.column_offset + target_offset)

    @abstractmethod
    def set_absolute(self, value: float, row: int, column: int) -> None:
        """Record the score for query ``row`` against target ``column``."""

    def close(self) -> None:
        pass

    def __enter__(self) -> "BaseOutput":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MatrixOutput(BaseOutput):
    """Dense score matrix; unset cells are NaN."""

    def initialize(self, target_files, query_files, block_rows=None, block_columns=None) -> None:
        super().initialize(target_files, query_files, block_rows, block_columns)
        self.scores = np.full((len(self.query_files), len(self.target_files)), np.nan, dtype=np.float32)

    def set_absolute(self, value: float, row: int, column: int) -> None:
        if row >= self.scores.shape[0] or column >= self.scores.shape[1]:
            raise FatalError(
                f"Score ({row}, {column}) outside {self.scores.shape} matrix for {self.file.name}"
            )
        self.scores[row, column] = value

    def close(self) -> None:
        self._write()

    def _prepare_path(self) -> None:
        directory = os.path.dirname(self.file.name)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def _write(self) -> None:
        pass


class NpzOutput(MatrixOutput):
    """Similarity matrix with record names, stored with ``numpy.savez``."""

    def _write(self) -> None:
        self._prepare_path()
        with open(self.file.name, "wb") as handle:
            np.savez(
                handle,
                scores=self.scores,
                target_names=np.array(self.target_files.names(), dtype=str),
                query_names=np.array(self.query_files.names(), dtype=str),
            )
        logger.debug(f"Wrote {self.scores.shape} similarity matrix to {self.file.name}")


class CsvOutput(MatrixOutput):
    """Similarity matrix as a pandas table indexed by query name."""

    def _write(self) -> None:
        self._prepare_path()
        frame = pd.DataFrame(
            self.scores,
            index=pd.Index(self.query_files.names(), name="query"),
            columns=self.target_files.names(),
        )
        frame.to_csv(self.file.name)


class MemoryOutput(MatrixOutput):
    """Similarity matrix kept in a process-wide table (``*.memmtx``)."""

    results: Dict[str, Tuple[np.ndarray, FileList, FileList]] = {}
    _lock = threading.Lock()

    def _write(self) -> None:
        with self._lock:
            self.results[self.file.name] = (self.scores.copy(), self.target_files, self.query_files)

    @classmethod
    def get(cls, name: str) -> Tuple[np.ndarray, FileList, FileList]:
        with cls._lock:
            if name not in cls.results:
                raise KeyError(name)
            return cls.results[name]

    @classmethod
    def clear(cls) -> None:
        with cls._lock:
            cls.results.clear()


def read_simmat(path: str) -> Tuple[np.ndarray, FileList, FileList]:
    """Load a ``.npz`` similarity matrix with its target and query names."""
    if not os.path.exists(path):
        raise FatalError(f"Missing similarity matrix {path}")
    with np.load(path, allow_pickle=False) as data:
        scores = np.asarray(data["scores"], dtype=np.float32)
        target_files = FileList(File(str(name)) for name in data["target_names"])
        query_files = FileList(File(str(name)) for name in data["query_names"])
    return scores, target_files, query_files


OUTPUT_REGISTRY: Dict[str, Type[BaseOutput]] = {}


def register_output(suffix: str, cls: Type[BaseOutput]) -> None:
    OUTPUT_REGISTRY[suffix] = cls


def get_output_class(suffix: str) -> Type[BaseOutput]:
    if suffix not in OUTPUT_REGISTRY:
        raise FatalError(f"Unknown output type '{suffix}'. Available: {list(OUTPUT_REGISTRY.keys())}")
    return OUTPUT_REGISTRY[suffix]


def make_output(
    file: File,
    target_files: FileList,
    query_files: FileList,
    context: ExecutionContext,
    block_rows: Optional[int] = None,
    block_columns: Optional[int] = None,
) -> BaseOutput:
    """Instantiate and initialize the output registered for ``file``'s suffix."""
    output_cls = get_output_class(file.suffix())
    output = output_cls(file, context)
    output.initialize(target_files, query_files, block_rows, block_columns)
    return output


register_output("npz", NpzOutput)
register_output("csv", CsvOutput)
register_output("memmtx", MemoryOutput)
