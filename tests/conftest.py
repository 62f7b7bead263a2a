"""Pytest fixtures and helpers for the biocore project."""
from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

# Ensure the package root is importable for test modules.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from biocore.algorithms.manager import AlgorithmManager, reset_manager  # noqa: E402
from biocore.runtime.context import ExecutionContext  # noqa: E402
from biocore.storage.gallery import MemoryGallery  # noqa: E402
from biocore.storage.output import MemoryOutput  # noqa: E402
from biocore.storage.template import File, Template, TemplateList  # noqa: E402


def make_templates(count: int, dimension: int = 4, seed: int = 0, prefix: str = "img") -> TemplateList:
    """Random labelled records named ``<prefix><i>.png``."""
    rng = np.random.default_rng(seed)
    templates = TemplateList()
    for index in range(count):
        file = File(f"{prefix}{index}.png", {"label": index % 3})
        templates.append(Template(file, rng.normal(size=dimension).astype(np.float32)))
    return templates


@pytest.fixture(autouse=True)
def clean_process_state():
    MemoryGallery.clear()
    MemoryOutput.clear()
    reset_manager()
    yield
    MemoryGallery.clear()
    MemoryOutput.clear()
    reset_manager()


@pytest.fixture
def context(tmp_path) -> ExecutionContext:
    return ExecutionContext(parallelism=1, block_size=10, quiet=True, sdk_path=str(tmp_path))


@pytest.fixture
def manager(context) -> AlgorithmManager:
    return AlgorithmManager(context)


@pytest.fixture
def put_records():
    """Store random records in a named memory gallery and return them."""
    def _put(name: str, count: int, dimension: int = 4, seed: int = 0, prefix: str = "img") -> TemplateList:
        templates = make_templates(count, dimension, seed, prefix)
        MemoryGallery.put(name, templates)
        return templates
    return _put


@pytest.fixture
def records():
    """Factory for in-memory records that are not stored anywhere."""
    return make_templates
