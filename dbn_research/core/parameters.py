# ファイルパス: dbn_research/core/parameters.py
# 日本語タイトル: パラメータストアと初期化ポリシー
# 機能説明:
#   重み行列 (num_visible x num_hidden) と隠れ/可視バイアスを保持し、
#   欠けているパラメータを分布からのサンプリングまたはゼロで補完する。
#
#   Hinton "A Practical Guide to Training RBMs" に従い、重みは平均0・標準偏差0.01程度の
#   小さな値で初期化する。大きな初期値は隠れユニットの発火確率を0/1付近に張り付かせ、学習を停滞させる。

from dataclasses import dataclass
from typing import Optional, Tuple
import logging

import torch

from dbn_research.core.distributions import SamplingDistribution, default_distribution
from dbn_research.core.exceptions import InvalidDimensionError

logger = logging.getLogger(__name__)

DEFAULT_DTYPE = torch.float64


def check_dimensions(num_visible: int, num_hidden: int) -> None:
    """次元の検証。確保処理の前に呼ぶこと。"""
    if num_visible is None or num_visible < 1:
        raise InvalidDimensionError(f"Number of visible can not be less than 1 (got {num_visible})")
    if num_hidden is None or num_hidden < 1:
        raise InvalidDimensionError(f"Number of hidden can not be less than 1 (got {num_hidden})")


def _as_tensor(value, name: str, shape: Tuple[int, ...]) -> torch.Tensor:
    tensor = torch.as_tensor(value)
    if not tensor.is_floating_point():
        tensor = tensor.to(DEFAULT_DTYPE)
    if tuple(tensor.shape) != shape:
        raise InvalidDimensionError(f"{name} must have shape {shape}, got {tuple(tensor.shape)}")
    return tensor


@dataclass
class LayerParameters:
    """1レイヤー分の学習可能パラメータ。"""
    weights: torch.Tensor
    hidden_bias: torch.Tensor
    visible_bias: torch.Tensor

    @property
    def shape(self) -> Tuple[int, int]:
        return (int(self.weights.shape[0]), int(self.weights.shape[1]))

    def clone(self) -> "LayerParameters":
        return LayerParameters(
            weights=self.weights.clone(),
            hidden_bias=self.hidden_bias.clone(),
            visible_bias=self.visible_bias.clone()
        )

    def transposed(self) -> "LayerParameters":
        # 可視/隠れの役割を入れ替える。バイアスは長さが一致する側へ移す
        return LayerParameters(
            weights=self.weights.t().clone(),
            hidden_bias=self.visible_bias.clone(),
            visible_bias=self.hidden_bias.clone()
        )


def sample_weight_matrix(
    num_visible: int,
    num_hidden: int,
    distribution: Optional[SamplingDistribution] = None,
    generator: Optional[torch.Generator] = None,
    dtype: torch.dtype = DEFAULT_DTYPE
) -> torch.Tensor:
    """各行を分布から独立に num_hidden 個サンプリングして重み行列を作る。"""
    check_dimensions(num_visible, num_hidden)
    distribution = distribution or default_distribution()

    weights = torch.zeros(num_visible, num_hidden, dtype=dtype)
    for i in range(num_visible):
        weights[i] = distribution.sample(num_hidden, generator=generator, dtype=dtype)
    return weights


def initialize_parameters(
    num_visible: int,
    num_hidden: int,
    weights: Optional[torch.Tensor] = None,
    hidden_bias: Optional[torch.Tensor] = None,
    visible_bias: Optional[torch.Tensor] = None,
    distribution: Optional[SamplingDistribution] = None,
    generator: Optional[torch.Generator] = None
) -> LayerParameters:
    """
    与えられたパラメータを検証し、欠けているものを補完する。

    Args:
        num_visible (int): 可視ユニット数 (>= 1)。
        num_hidden (int): 隠れユニット数 (>= 1)。
        weights, hidden_bias, visible_bias: 既存のパラメータ。None の場合は生成する。
        distribution: 重みのサンプリング分布。None なら N(0, 0.01)。
        generator: サンプリングに使う乱数源。

    Returns:
        LayerParameters: 形状が保証されたパラメータ一式。
    """
    check_dimensions(num_visible, num_hidden)

    if weights is None:
        weights = sample_weight_matrix(num_visible, num_hidden, distribution, generator)
        logger.debug(f"Sampled initial weights ({num_visible}x{num_hidden}) from {distribution}")
    else:
        weights = _as_tensor(weights, "weights", (num_visible, num_hidden))

    if hidden_bias is None:
        hidden_bias = torch.zeros(num_hidden, dtype=weights.dtype)
    else:
        hidden_bias = _as_tensor(hidden_bias, "hidden_bias", (num_hidden,))

    if visible_bias is None:
        visible_bias = torch.zeros(num_visible, dtype=weights.dtype)
    else:
        visible_bias = _as_tensor(visible_bias, "visible_bias", (num_visible,))

    return LayerParameters(weights=weights, hidden_bias=hidden_bias, visible_bias=visible_bias)
