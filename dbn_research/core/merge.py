# ファイルパス: dbn_research/core/merge.py
# 日本語タイトル: 並列ワーカー間のパラメータマージ
# 機能説明:
#   ピアの重み/バイアスへ向けて自パラメータをインプレースで近づける。
#   正則化有効時は batch_size で差分を割り、減衰させる。ピアは読み取り専用。

import logging

import torch

from dbn_research.core.exceptions import InvalidDimensionError
from dbn_research.core.parameters import LayerParameters

logger = logging.getLogger(__name__)


def _blend_(target: torch.Tensor, peer: torch.Tensor, divisor: float) -> None:
    delta = peer.to(target.dtype) - target
    if divisor != 1:
        delta = delta / divisor
    target.add_(delta)


def merge_parameters(
    target: LayerParameters,
    peer: LayerParameters,
    batch_size: int,
    use_regularization: bool
) -> None:
    """
    p += (peer_p - p) / batch_size   (use_regularization=True)
    p += (peer_p - p)                (use_regularization=False)
    """
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise ValueError(f"batch_size must be a positive integer, got {batch_size!r}")

    # 形状を先に全て確認し、途中失敗で一部だけ更新されるのを防ぐ
    for name in ("weights", "hidden_bias", "visible_bias"):
        if getattr(target, name).shape != getattr(peer, name).shape:
            raise InvalidDimensionError(
                f"Cannot merge {name}: shape {tuple(getattr(peer, name).shape)} "
                f"!= {tuple(getattr(target, name).shape)}")

    divisor = batch_size if use_regularization else 1
    _blend_(target.weights, peer.weights, divisor)
    _blend_(target.hidden_bias, peer.hidden_bias, divisor)
    _blend_(target.visible_bias, peer.visible_bias, divisor)
    logger.debug(f"Merged peer parameters (divisor={divisor}, shape={target.shape})")
