# ファイルパス: dbn_research/core/distributions.py
# 日本語タイトル: 重み初期化用の確率分布と乱数源
# 機能説明:
#   重み行列の行ごとのサンプリングに使う分布クラスと、シード付き乱数源 (torch.Generator) の生成。
#   乱数源は transpose/duplicate で生成されたレイヤー間で参照共有されるため、
#   複数スレッドから同時に使う場合は呼び出し側でロックすること。

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional
import logging

import torch

from dbn_research.core.exceptions import ConstructionError

logger = logging.getLogger(__name__)

DEFAULT_SEED = 1234


def create_random_source(seed: Optional[int] = None) -> torch.Generator:
    """シード付きの CPU 乱数源を生成する。seed 省略時は DEFAULT_SEED。"""
    generator = torch.Generator(device="cpu")
    generator.manual_seed(DEFAULT_SEED if seed is None else int(seed))
    return generator


class SamplingDistribution(ABC):
    """
    実数値分布の抽象基底クラス。
    sample() は渡された乱数源のみを消費し、グローバル乱数状態には触れない。
    """

    @abstractmethod
    def sample(self, n: int, generator: Optional[torch.Generator] = None,
               dtype: torch.dtype = torch.float64) -> torch.Tensor:
        """長さ n の1次元テンソルをサンプリングする。"""
        raise NotImplementedError

    @abstractmethod
    def to_config(self) -> Dict[str, Any]:
        raise NotImplementedError


class NormalDistribution(SamplingDistribution):
    """平均 mean, 標準偏差 std の正規分布。既定値 (0, 0.01) は RBM の標準的な初期化。"""

    def __init__(self, mean: float = 0.0, std: float = 0.01):
        if std <= 0:
            raise ValueError(f"std must be positive, got {std}")
        self.mean = float(mean)
        self.std = float(std)

    def sample(self, n: int, generator: Optional[torch.Generator] = None,
               dtype: torch.dtype = torch.float64) -> torch.Tensor:
        values = torch.randn(n, generator=generator, dtype=dtype)
        return values * self.std + self.mean

    def to_config(self) -> Dict[str, Any]:
        return {"type": "normal", "mean": self.mean, "std": self.std}

    def __repr__(self) -> str:
        return f"NormalDistribution(mean={self.mean}, std={self.std})"


class UniformDistribution(SamplingDistribution):
    """区間 [low, high) の一様分布。"""

    def __init__(self, low: float = -0.01, high: float = 0.01):
        if high <= low:
            raise ValueError(f"high must be greater than low, got [{low}, {high})")
        self.low = float(low)
        self.high = float(high)

    def sample(self, n: int, generator: Optional[torch.Generator] = None,
               dtype: torch.dtype = torch.float64) -> torch.Tensor:
        values = torch.rand(n, generator=generator, dtype=dtype)
        return values * (self.high - self.low) + self.low

    def to_config(self) -> Dict[str, Any]:
        return {"type": "uniform", "low": self.low, "high": self.high}

    def __repr__(self) -> str:
        return f"UniformDistribution(low={self.low}, high={self.high})"


def default_distribution() -> SamplingDistribution:
    return NormalDistribution(mean=0.0, std=0.01)


def build_distribution(config: Optional[Mapping[str, Any]]) -> SamplingDistribution:
    """
    設定辞書 (DistributionConfig / dict) から分布を生成する。

    Args:
        config: 'type' キー ('normal' | 'uniform') とそのパラメータ。None なら既定の正規分布。
    """
    if config is None:
        return default_distribution()
    if not isinstance(config, Mapping):
        raise ConstructionError(
            f"Distribution config must be a mapping, got {type(config).__name__}")

    dist_type = str(config.get("type", "normal")).lower()
    try:
        if dist_type in ("normal", "gaussian"):
            return NormalDistribution(
                mean=config.get("mean", 0.0), std=config.get("std", 0.01))
        if dist_type == "uniform":
            return UniformDistribution(
                low=config.get("low", -0.01), high=config.get("high", 0.01))
    except (TypeError, ValueError) as e:
        raise ConstructionError(f"Invalid parameters for distribution '{dist_type}': {e}") from e

    raise ConstructionError(
        f"Unknown distribution type '{dist_type}'. Available: ['normal', 'uniform']")
