#!/usr/bin/env python
"""
Biometric recognition core
Command-line wrapper for training, enrolling and comparing with named algorithms.
"""
import argparse
import logging
import sys

from biocore import AlgorithmManager, ExecutionContext, FatalError, api, set_manager


def setup_logging(verbose: bool):
    """
    Set up logging configuration.

    Args:
        verbose: Whether to enable debug logging
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Biometric recognition core")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to execution context YAML")
    parser.add_argument("--verbose", action="store_true",
                        help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    train = subparsers.add_parser("train", help="Train an algorithm and optionally store the model")
    train.add_argument("algorithm")
    train.add_argument("input")
    train.add_argument("model", nargs="?", default=None)

    enroll = subparsers.add_parser("enroll", help="Enroll an input into a gallery")
    enroll.add_argument("algorithm")
    enroll.add_argument("input")
    enroll.add_argument("gallery", nargs="?", default=None)

    compare = subparsers.add_parser("compare", help="Score queries against targets")
    compare.add_argument("algorithm")
    compare.add_argument("target")
    compare.add_argument("query")
    compare.add_argument("output")

    convert = subparsers.add_parser("convert", help="Convert a Gallery or Output to another format")
    convert.add_argument("file_type", choices=["Gallery", "Output"])
    convert.add_argument("input")
    convert.add_argument("output")

    cat = subparsers.add_parser("cat", help="Concatenate Galleries or Outputs")
    cat.add_argument("file_type", choices=["Gallery", "Output"])
    cat.add_argument("inputs", nargs="+")
    cat.add_argument("output")
    return parser


def main(argv=None):
    """
    Main entry point.
    """
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    context = ExecutionContext.from_yaml(args.config) if args.config else ExecutionContext()
    if args.config:
        logger.info(f"Loaded execution context from {args.config}")
    manager = AlgorithmManager(context)
    set_manager(manager)

    try:
        if args.command == "train":
            api.train(args.algorithm, args.input, args.model, manager=manager)
        elif args.command == "enroll":
            files = api.enroll(args.algorithm, args.input, args.gallery, manager=manager)
            logger.info(f"Enrolled {len(files)} templates ({files.failures()} failures)")
        elif args.command == "compare":
            api.compare(args.algorithm, args.target, args.query, args.output, manager=manager)
        elif args.command == "convert":
            api.convert(args.file_type, args.input, args.output, manager=manager)
        elif args.command == "cat":
            api.cat(args.file_type, args.inputs, args.output, manager=manager)
    except FatalError as e:
        logger.error(str(e))
        return 1
    finally:
        manager.finalize()

    return 0


if __name__ == "__main__":
    sys.exit(main())
