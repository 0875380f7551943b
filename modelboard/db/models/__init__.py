from .model import Provider, Model
from .benchmark import BenchmarkCategory, BenchmarkDefinition, BenchmarkScore, NormalizationMethod
from .price import Price
from .name_mapping import ModelNameMapping
from .staging import StagingBenchmark, StagingPrice, StagingStatus

__all__ = [
    "Provider",
    "Model",
    "BenchmarkCategory",
    "BenchmarkDefinition",
    "BenchmarkScore",
    "NormalizationMethod",
    "Price",
    "ModelNameMapping",
    "StagingBenchmark",
    "StagingPrice",
    "StagingStatus",
]
