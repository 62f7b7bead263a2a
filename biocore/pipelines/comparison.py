"""Blocked pairwise comparison of two enrolled populations."""
from __future__ import annotations

import logging
from typing import List, Sequence

from ..errors import FatalError
from ..runtime.context import ExecutionContext
from ..storage.output import BaseOutput, make_output
from ..storage.template import File, FileList

logger = logging.getLogger(__name__)

SHARD_PLACEHOLDER = "%1"


def split_sizes(output: File) -> List[int]:
    """Validated ``split`` partition sizes of ``output``, empty when unsharded."""
    if not output.contains("split"):
        return []
    sizes = output.get_list("split")
    if not sizes:
        raise FatalError(f"Empty split for {output.name}")
    for size in sizes:
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise FatalError(f"Invalid split size '{size}' for {output.name}")
    return sizes


def shard_files(files: FileList, sizes: Sequence[int], block_size: int) -> List[FileList]:
    """Per-segment handles, in block order, following ``TemplateList.partition``."""
    shards = [FileList() for _ in sizes]
    for start in range(0, len(files), block_size):
        block = files[start:start + block_size]
        offset = 0
        for index, size in enumerate(sizes):
            shards[index].extend(block[offset:offset + size])
            offset += size
    return shards


def compare(
    algorithm,
    target: File,
    query: File,
    output: File,
    context: ExecutionContext,
) -> List[File]:
    """Score every query against every target and write the results.

    Args:
        algorithm: ``AlgorithmCore`` providing the distance
        target: Target population; enrolled first unless it is already a gallery
        query: Query population, or ``"."`` to reuse the target
        output: Score sink. ``cache=true`` skips an existing output and
            ``split=(s0,s1,...)`` writes one sink per segment, replacing ``%1``
            in the name with the segment index.
        context: Execution settings and progress tracker

    Returns:
        Descriptors of the outputs written
    """
    logger.info(
        f"Comparing {target.flat()} and {query.flat()}"
        + ("" if output.is_null() else f" to {output.flat()}")
    )

    if algorithm.distance is None:
        raise FatalError("Null distance.")

    if output.exists() and output.get_bool("cache"):
        logger.info(f"Using cached {output.file_name()}")
        return [output]

    if query.name == ".":
        query = target.copy()

    if output.is_null():
        output = File(algorithm.name + target.hash() + query.hash() + ".memmtx")

    sizes = split_sizes(output)
    if sizes and SHARD_PLACEHOLDER not in output.name:
        raise FatalError(f"Output file name missing split number place marker ({SHARD_PLACEHOLDER}): {output.name}")
    if sum(sizes) > context.block_size:
        raise FatalError(f"Split sizes {sizes} exceed the block size {context.block_size} for {output.name}")

    target_gallery, target_files = algorithm.retrieve_or_enroll(target)
    query_gallery, query_files = algorithm.retrieve_or_enroll(query)
    block_size = context.block_size

    outputs: List[BaseOutput] = []
    progress = context.progress
    try:
        if sizes:
            target_shards = shard_files(target_files, sizes, block_size)
            query_shards = shard_files(query_files, sizes, block_size)
            for index, (target_shard, query_shard) in enumerate(zip(target_shards, query_shards)):
                shard = output.with_name(output.name.replace(SHARD_PLACEHOLDER, str(index)))
                shard.remove("split")
                outputs.append(make_output(shard, target_shard, query_shard, context, sizes[index], sizes[index]))
        else:
            outputs.append(make_output(output, target_files, query_files, context))

        total = sum(len(sink.target_files) * len(sink.query_files) for sink in outputs)
        progress.start(total, desc=f"Comparing {output.file_name()}")

        query_block_index = 0
        query_gallery.rewind()
        done = False
        while not done:
            query_block, done = query_gallery.read_block()
            query_parts = query_block.partition(sizes) if sizes else [query_block]

            for index, query_part in enumerate(query_parts):
                target_gallery.rewind()
                target_block_index = 0
                target_done = False
                while not target_done:
                    target_block, target_done = target_gallery.read_block()
                    target_parts = target_block.partition(sizes) if sizes else [target_block]

                    outputs[index].set_block(query_block_index, target_block_index)
                    algorithm.distance.compare(target_parts[index], query_part, outputs[index])

                    progress.advance(len(target_parts[index]) * len(query_part))
                    progress.print_status()
                    target_block_index += 1

            query_block_index += 1

        if progress.should_report():
            logger.info(
                f"{int(progress.total_steps)} comparisons in {progress.elapsed():.3f} seconds "
                f"(SPEED={progress.speed():.1e})"
            )
    finally:
        progress.finish()
        for sink in outputs:
            sink.close()
        target_gallery.close()
        query_gallery.close()

    return [sink.file for sink in outputs]
