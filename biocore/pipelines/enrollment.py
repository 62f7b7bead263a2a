"""Blocked enrollment of an input source into a gallery."""
from __future__ import annotations

import logging
import math
from typing import Set, Tuple

from ..errors import FatalError
from ..runtime.context import ExecutionContext
from ..storage.gallery import BaseGallery, make_gallery
from ..storage.template import File, FileList, TemplateList

logger = logging.getLogger(__name__)


def _drop_duplicates(data: TemplateList, known: Set[str]) -> None:
    """Remove records already enrolled, keeping the first occurrence within ``data``."""
    names = [template.file.name for template in data]
    # Back to front so earlier indices stay valid while deleting
    for index in range(len(data) - 1, -1, -1):
        name = names[index]
        if name in known or name in names[:index]:
            del data[index]


def enroll(algorithm, input: File, gallery: File, context: ExecutionContext) -> FileList:
    """Enroll ``input`` into ``gallery`` block by block.

    Args:
        algorithm: ``AlgorithmCore`` whose transform projects the records
        input: Input source descriptor; ``infinite=true`` repeats the pass forever
        gallery: Target gallery; empty selects the algorithm's memory gallery.
            Options ``read``, ``cache`` and ``noDuplicates`` are honoured.
        context: Execution settings and progress tracker

    Returns:
        Handles of the records enrolled by the last pass, preceded by the
        gallery's existing records when it was opened in ``read`` or ``cache`` mode
    """
    logger.info(f"Enrolling {input.flat()}" + ("" if gallery.is_null() else f" to {gallery.flat()}"))

    if gallery.is_null():
        if input.is_null():
            return FileList()
        gallery = algorithm.get_memory_gallery(input)

    store = make_gallery(gallery, context)
    if store is None:
        raise FatalError("Null gallery!")

    try:
        while True:
            file_list, finished = _enroll_pass(algorithm, input, gallery, store, context)
            if finished or not input.get_bool("infinite"):
                return file_list
    finally:
        store.close()


def _enroll_pass(
    algorithm,
    input: File,
    gallery: File,
    store: BaseGallery,
    context: ExecutionContext,
) -> Tuple[FileList, bool]:
    """Run one pass over the input. The flag is set when the pass returned early."""
    file_list = FileList()
    reads_existing = gallery.get_bool("read") or gallery.get_bool("cache")
    no_duplicates = gallery.get_bool("noDuplicates")

    existing = store.files() if (reads_existing or no_duplicates) else FileList()
    if reads_existing:
        file_list.extend(existing)
    if file_list and gallery.get_bool("cache"):
        return file_list, True

    templates = TemplateList.from_gallery(input, context)
    if not templates:
        # Nothing to enroll
        return file_list, True

    if algorithm.transform is None:
        raise FatalError("Null transform.")

    block_size = context.block_size
    sub_block_size = context.sub_block_size()
    num_sub_blocks = int(math.ceil(block_size / sub_block_size))
    known: Set[str] = set(existing.names()) if no_duplicates else set()

    progress = context.progress
    progress.start(len(templates), desc=f"Enrolling {input.file_name()}")
    total_count = 0
    failure_count = 0
    total_bytes = 0.0
    try:
        for block in range(context.blocks(len(templates))):
            block_end = min((block + 1) * block_size, len(templates))
            for sub_block in range(num_sub_blocks):
                start = block * block_size + sub_block * sub_block_size
                if start >= block_end:
                    break
                data = templates.mid(start, min(sub_block_size, block_end - start))
                num_files = len(data)
                if no_duplicates:
                    _drop_duplicates(data, known)

                if data:
                    projected = algorithm.transform.project(data)
                    store.write_block(projected)
                    new_files = projected.files()
                    file_list.extend(new_files)
                    if no_duplicates:
                        known.update(new_files.names())

                    total_count += len(new_files)
                    failure_count += new_files.failures()
                    total_bytes += projected.bytes()

                progress.advance(num_files)
                progress.print_status()

        if progress.should_report():
            logger.info(
                f"TIME ELAPSED (MINS) {progress.elapsed() / 60.0:f} SPEED={progress.speed():.1e} "
                f"SIZE={total_bytes / max(total_count, 1):.4g} FAILURES={failure_count}/{total_count}"
            )
    finally:
        progress.finish()

    return file_list, False
