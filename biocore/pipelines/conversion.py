"""Gallery and similarity-matrix conversion and concatenation."""
from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from ..errors import FatalError
from ..runtime.context import ExecutionContext
from ..storage.gallery import BaseGallery, make_gallery
from ..storage.output import make_output, read_simmat
from ..storage.template import File, FileList

logger = logging.getLogger(__name__)

CAT_TYPES = ("colWise", "rowWise")


def _stream(source: BaseGallery, sink: BaseGallery) -> int:
    count = 0
    source.rewind()
    done = False
    while not done:
        block, done = source.read_block()
        if block:
            sink.write_block(block)
            count += len(block)
    return count


def _write_matrix(scores: np.ndarray, target_files: FileList, query_files: FileList,
                  output: File, context: ExecutionContext) -> None:
    with make_output(output, target_files, query_files, context) as sink:
        for row in range(len(query_files)):
            for column in range(len(target_files)):
                sink.set_relative(float(scores[row, column]), row, column)


def _read_checked(path: str):
    scores, target_files, query_files = read_simmat(path)
    if scores.shape != (len(query_files), len(target_files)):
        raise FatalError(
            f"Similarity matrix {scores.shape} and file size ({len(query_files)}, {len(target_files)}) mismatch."
        )
    return scores, target_files, query_files


def convert(file_type: str, input: File, output: File, context: ExecutionContext) -> None:
    """Rewrite a gallery or similarity matrix in another storage format."""
    logger.info(f"Converting {file_type} {input.flat()} to {output.flat()}")

    if file_type == "Gallery":
        with make_gallery(input, context) as source, make_gallery(output, context) as sink:
            count = _stream(source, sink)
        logger.debug(f"Converted {count} templates")
    elif file_type == "Output":
        scores, target_files, query_files = read_simmat(input.name)
        if scores.shape != (len(query_files), len(target_files)):
            raise FatalError("Similarity matrix and file size mismatch.")
        _write_matrix(scores, target_files, query_files, output, context)
    else:
        raise FatalError(f"Unrecognized file type {file_type}.")


def cat(file_type: str, inputs: Sequence[File], output: File, context: ExecutionContext) -> None:
    """Concatenate galleries, or similarity matrices along ``catType``."""
    logger.info(f"Concatenating {len(inputs)} {file_type} files to {output.flat()}")

    if file_type == "Gallery":
        for input in inputs:
            if input.name == output.name:
                raise FatalError("outputFile must not be in inputFiles.")

        with make_gallery(output, context) as sink:
            for input in inputs:
                with make_gallery(input, context) as source:
                    _stream(source, sink)
    elif file_type == "Output":
        if not inputs:
            raise FatalError("No similarity matrices to concatenate.")
        cat_type = output.get("catType")

        # Concatenate onto the first matrix
        scores, target_files, query_files = _read_checked(inputs[0].name)
        for input in inputs[1:]:
            matrix, targets, queries = _read_checked(input.name)
            if cat_type == "colWise":
                # More targets for the same queries
                if matrix.shape[0] != scores.shape[0]:
                    raise FatalError(f"Cannot append {matrix.shape} columns to {scores.shape} matrix.")
                target_files.extend(targets)
                scores = np.hstack([scores, matrix])
            elif cat_type == "rowWise":
                # More queries for the same targets
                if matrix.shape[1] != scores.shape[1]:
                    raise FatalError(f"Cannot append {matrix.shape} rows to {scores.shape} matrix.")
                query_files.extend(queries)
                scores = np.vstack([scores, matrix])
            else:
                raise FatalError(f"Unsupported concatenation type '{cat_type}'. Available: {list(CAT_TYPES)}")

        _write_matrix(scores, target_files, query_files, output, context)
    else:
        raise FatalError(f"Unrecognized file type {file_type}.")
