# dbn_research/core/__init__.py

from .exceptions import (
    LayerError,
    InvalidDimensionError,
    PreconditionError,
    ConstructionError,
    PersistenceError,
)
from .distributions import (
    SamplingDistribution,
    NormalDistribution,
    UniformDistribution,
    build_distribution,
    create_random_source,
)
from .parameters import LayerParameters, initialize_parameters, sample_weight_matrix
from .layer_registry import LayerRegistry

__all__ = [
    "LayerError",
    "InvalidDimensionError",
    "PreconditionError",
    "ConstructionError",
    "PersistenceError",
    "SamplingDistribution",
    "NormalDistribution",
    "UniformDistribution",
    "build_distribution",
    "create_random_source",
    "LayerParameters",
    "initialize_parameters",
    "sample_weight_matrix",
    "LayerRegistry",
]
