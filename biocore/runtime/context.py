import math
import os
import copy
from typing import Dict, Any

import yaml

from .progress import ProgressTracker


class ExecutionContext:
    """
    Runtime settings threaded through the algorithm registry and pipelines.
    """

    def __init__(self, **kwargs):
        """
        Initialize the context with default values.

        Args:
            **kwargs: Override default values
        """
        # Worker fan-out used by distributed transforms and chunk sizing
        self.parallelism = int(kwargs.get("parallelism", os.cpu_count() or 1))
        default_block_size = max(1, self.parallelism) * 1024
        self.block_size = int(kwargs.get("block_size", default_block_size))
        if self.block_size <= 0:
            raise ValueError(f"block_size must be positive, got {self.block_size}")

        # Algorithm name expansions, e.g. {"FaceRecognition": "PCA(keep=64):L2"}
        self.abbreviations: Dict[str, str] = copy.deepcopy(kwargs.get("abbreviations", {}))

        # Location of pre-built algorithm models
        self.sdk_path = kwargs.get("sdk_path", os.getcwd())
        self.model_dir = kwargs.get(
            "model_dir", os.path.join(self.sdk_path, "share", "models", "algorithms")
        )

        self.quiet = bool(kwargs.get("quiet", False))
        self.progress = ProgressTracker(quiet=self.quiet, parallelism=self.parallelism)

    def blocks(self, size: int) -> int:
        """Number of blocks needed to cover ``size`` records."""
        return int(math.ceil(size / self.block_size))

    def sub_block_size(self) -> int:
        """Chunk size that keeps every worker fed within one block."""
        return 4 * max(1, self.parallelism)

    @classmethod
    def from_yaml(cls, yaml_file: str) -> 'ExecutionContext':
        """
        Load a context from a YAML file.

        Args:
            yaml_file: Path to YAML configuration file

        Returns:
            ExecutionContext instance
        """
        with open(yaml_file, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        return cls(**config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the context settings to a dictionary.

        Returns:
            Dictionary representation of the settings
        """
        return {
            "parallelism": self.parallelism,
            "block_size": self.block_size,
            "abbreviations": self.abbreviations,
            "sdk_path": self.sdk_path,
            "model_dir": self.model_dir,
            "quiet": self.quiet,
        }

    def save(self, output_file: str) -> None:
        """
        Save the settings to a YAML file.

        Args:
            output_file: Path to save configuration
        """
        with open(output_file, 'w') as f:
            yaml.dump(self.to_dict(), f)

    def __str__(self) -> str:
        return yaml.dump(self.to_dict())
