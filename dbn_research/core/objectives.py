# ファイルパス: dbn_research/core/objectives.py
# 日本語タイトル: 再構成誤差の評価関数
# 機能説明:
#   再構成クロスエントロピーと二乗再構成損失。どちらも L2 正則化に対応する。
#   戻り値の符号と正規化は従来実装と数値的に一致させている:
#   - クロスエントロピー: 正則化時は (要素数 + L2ペナルティ) で割る (加算ではない)。
#   - 二乗損失: 合計を負にして返す (最大化すべきスコアとして扱う)。

import torch

from dbn_research.core.exceptions import InvalidDimensionError
from dbn_research.core.parameters import LayerParameters

# log(0) を避けるための確率クランプ幅
PROBABILITY_EPS = 1e-12


def l2_regularized_coefficient(weights: torch.Tensor, l2: float) -> float:
    """(sum(W^2) / 2) * l2"""
    return float(weights.pow(2).sum().item() / 2.0 * l2)


def _safe_log(probabilities: torch.Tensor) -> torch.Tensor:
    return torch.log(probabilities.clamp(PROBABILITY_EPS, 1.0 - PROBABILITY_EPS))


def _require_examples(inputs: torch.Tensor) -> None:
    if inputs.dim() != 2 or inputs.shape[0] == 0:
        raise InvalidDimensionError(
            f"inputs must be a non-empty (N, num_visible) batch, got shape {tuple(inputs.shape)}")


def reconstruction_cross_entropy(
    inputs: torch.Tensor,
    params: LayerParameters,
    l2: float = 0.0,
    use_regularization: bool = False
) -> float:
    """
    入力と再構成された可視確率の間のクロスエントロピー。

    h = sigmoid(x W + hb), v = sigmoid(h W^T + vb)
    inner = x * log(v) + (1 - x) * log(1 - v)
    """
    _require_examples(inputs)
    x = inputs.to(params.weights.dtype)
    hidden_probs = torch.sigmoid(x @ params.weights + params.hidden_bias)
    visible_probs = torch.sigmoid(hidden_probs @ params.weights.t() + params.visible_bias)

    inner = x * _safe_log(visible_probs) + (1.0 - x) * _safe_log(1.0 - visible_probs)
    mean_row_sum = inner.sum(dim=1).mean().item()

    if use_regularization:
        normalized = inner.numel() + l2_regularized_coefficient(params.weights, l2)
        return -mean_row_sum / normalized

    return -mean_row_sum


def squared_reconstruction_loss(
    inputs: torch.Tensor,
    reconstructed: torch.Tensor,
    weights: torch.Tensor,
    l2: float = 0.0,
    use_regularization: bool = False
) -> float:
    """
    sum((r - x)^2) / 行数 (+ 0.5 * l2 * sum(W^2)) を負にして返す。
    値が大きいほど良い再構成を意味する。
    """
    _require_examples(inputs)
    x = inputs.to(weights.dtype)
    r = reconstructed.to(weights.dtype)
    loss = (r - x).pow(2).sum().item() / x.shape[0]
    if use_regularization:
        loss += 0.5 * l2 * weights.pow(2).sum().item()
    return -loss
