"""Records flowing through the enrollment and comparison pipelines."""
from __future__ import annotations

import copy
import hashlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

import numpy as np

from ..utils.parsing import format_value, parse_value, split_top_level
from ..utils.vector_utils import stack_rows

if TYPE_CHECKING:  # pragma: no cover
    from ..runtime.context import ExecutionContext


class File:
    """Descriptor of the form ``name[key=value,flag,...]``.

    The name is a path, gallery key or plugin spec; the metadata carries typed
    options such as ``cache``, ``split=(5,5)`` or a record ``label``.
    """

    def __init__(self, name: str = "", metadata: Optional[Dict[str, Any]] = None) -> None:
        self.name = name
        self.metadata: Dict[str, Any] = dict(metadata or {})

    @classmethod
    def parse(cls, descriptor: Any) -> "File":
        if isinstance(descriptor, File):
            return descriptor.copy()
        if isinstance(descriptor, os.PathLike):
            return cls(os.fspath(descriptor))
        text = str(descriptor).strip()
        if not text.endswith("]") or "[" not in text:
            return cls(text)

        # Match the trailing bracket group so nested plugin args survive.
        depth = 0
        for index in range(len(text) - 1, -1, -1):
            char = text[index]
            if char == "]":
                depth += 1
            elif char == "[":
                depth -= 1
                if depth == 0:
                    break
        else:
            raise ValueError(f"Unbalanced brackets in descriptor '{text}'")

        metadata: Dict[str, Any] = {}
        for item in split_top_level(text[index + 1:-1], ","):
            if not item:
                continue
            if "=" in item:
                key, value = item.split("=", 1)
                metadata[key.strip()] = parse_value(value)
            else:
                metadata[item] = True
        return cls(text[:index], metadata)

    def flat(self) -> str:
        if not self.metadata:
            return self.name
        options = ",".join(f"{key}={format_value(value)}" for key, value in self.metadata.items())
        return f"{self.name}[{options}]"

    def copy(self) -> "File":
        return File(self.name, copy.deepcopy(self.metadata))

    def with_name(self, name: str) -> "File":
        """Copy of this descriptor under a different name."""
        result = self.copy()
        result.name = name
        return result

    # ------------------------------------------------------------------
    # Metadata access
    # ------------------------------------------------------------------
    def contains(self, key: str) -> bool:
        return key in self.metadata

    def get(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        if key not in self.metadata:
            return default
        value = self.metadata[key]
        if isinstance(value, str):
            return parse_value(value) is True
        return bool(value)

    def get_list(self, key: str) -> List[Any]:
        value = self.metadata.get(key)
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return list(value)
        return [value]

    def set(self, key: str, value: Any) -> None:
        self.metadata[key] = value

    def remove(self, key: str) -> None:
        self.metadata.pop(key, None)

    @property
    def fte(self) -> bool:
        """Failure-to-enroll flag."""
        return self.get_bool("fte")

    @fte.setter
    def fte(self, value: bool) -> None:
        if value:
            self.metadata["fte"] = True
        else:
            self.metadata.pop("fte", None)

    @property
    def label(self) -> Any:
        return self.metadata.get("label")

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------
    def is_null(self) -> bool:
        return self.name == ""

    def suffix(self) -> str:
        return Path(self.name).suffix[1:].lower()

    def base_name(self) -> str:
        return Path(self.name).stem

    def file_name(self) -> str:
        return Path(self.name).name

    def exists(self) -> bool:
        return bool(self.name) and os.path.exists(self.name)

    def hash(self) -> str:
        """Short content hash of the full descriptor."""
        return hashlib.md5(self.flat().encode("utf-8")).hexdigest()[:8]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, File):
            return self.name == other.name
        if isinstance(other, str):
            return self.name == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        return self.flat()

    def __repr__(self) -> str:
        return f"File({self.flat()!r})"


class FileList(list):
    """List of :class:`File` handles describing enrolled records."""

    def names(self) -> List[str]:
        return [f.name for f in self]

    def failures(self) -> int:
        return sum(1 for f in self if f.fte)


@dataclass
class Template:
    """One enrolled record: identity metadata plus a float32 payload."""

    file: File
    data: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float32))

    def __post_init__(self) -> None:
        if not isinstance(self.file, File):
            self.file = File.parse(self.file)
        self.data = np.asarray(self.data, dtype=np.float32)

    def bytes(self) -> int:
        return int(self.data.nbytes)

    def copy(self) -> "Template":
        return Template(self.file.copy(), self.data.copy())


class TemplateList(list):
    """Ordered batch of templates."""

    def files(self) -> FileList:
        return FileList(t.file for t in self)

    def bytes(self) -> float:
        return float(sum(t.bytes() for t in self))

    def data_matrix(self) -> np.ndarray:
        """Stack every payload into a ``(len(self), dim)`` float32 matrix."""
        return stack_rows(t.data for t in self)

    def mid(self, start: int, length: int) -> "TemplateList":
        return TemplateList(self[start:start + length])

    def partition(self, sizes: Sequence[int]) -> List["TemplateList"]:
        """Split into consecutive segments of the given sizes.

        Segments past the end of the list are empty; records beyond
        ``sum(sizes)`` belong to no segment.
        """
        partitions: List[TemplateList] = []
        offset = 0
        for size in sizes:
            partitions.append(TemplateList(self[offset:offset + size]))
            offset += size
        return partitions

    @classmethod
    def from_gallery(cls, descriptor: Any, context: "ExecutionContext") -> "TemplateList":
        """Materialise every record of an input source."""
        from .gallery import make_gallery

        gallery = make_gallery(File.parse(descriptor), context)
        try:
            return gallery.read_all()
        finally:
            gallery.close()
