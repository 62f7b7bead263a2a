from .base import (
    BaseDistance,
    BaseTransform,
    DISTANCE_REGISTRY,
    TRANSFORM_REGISTRY,
    get_distance_class,
    get_transform_class,
    make_distance,
    make_transform,
    register_distance,
    register_transform,
)
from .transforms import (
    CenterTransform,
    DistributeTemplateTransform,
    FromAlgorithmTransform,
    IdentityTransform,
    NormalizeTransform,
    PCATransform,
    PipeTransform,
)
from .distances import (
    CosineDistance,
    DotDistance,
    FromAlgorithmDistance,
    L2Distance,
    ZScoreDistance,
)
from .core import AlgorithmCore
from .manager import AlgorithmManager, get_manager, reset_manager, set_manager

__all__ = [
    "AlgorithmCore",
    "AlgorithmManager",
    "get_manager",
    "set_manager",
    "reset_manager",
    "BaseTransform",
    "BaseDistance",
    "TRANSFORM_REGISTRY",
    "DISTANCE_REGISTRY",
    "register_transform",
    "register_distance",
    "get_transform_class",
    "get_distance_class",
    "make_transform",
    "make_distance",
    "IdentityTransform",
    "NormalizeTransform",
    "CenterTransform",
    "PCATransform",
    "PipeTransform",
    "DistributeTemplateTransform",
    "FromAlgorithmTransform",
    "L2Distance",
    "CosineDistance",
    "DotDistance",
    "ZScoreDistance",
    "FromAlgorithmDistance",
]
