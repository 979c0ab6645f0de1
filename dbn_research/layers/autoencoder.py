# ファイルパス: dbn_research/layers/autoencoder.py
# 日本語タイトル: 重み共有シグモイド・オートエンコーダ層
# 機能説明:
#   AbstractPretrainLayer の参照実装。入力 x を h = sigmoid(x W + hb) に符号化し、
#   共有重みの転置で z = sigmoid(h W^T + vb) に復号する。
#   train() は再構成対数尤度の勾配上昇を1ステップ行う (入力へのノイズ付加は行わない)。

from typing import Any, Optional, Sequence
import logging

import torch
from torch import Tensor

from dbn_research.core.layer_registry import LayerRegistry
from dbn_research.layers.abstract_layer import AbstractPretrainLayer

logger = logging.getLogger(__name__)


@LayerRegistry.register("autoencoder")
class AutoEncoderLayer(AbstractPretrainLayer):
    """Tied-weight sigmoid autoencoder used as a greedy pretraining layer."""

    def encode(self, x: Tensor) -> Tensor:
        x = torch.as_tensor(x, dtype=self.weights.dtype)
        return torch.sigmoid(x @ self.weights + self.hidden_bias)

    def decode(self, hidden: Tensor) -> Tensor:
        return torch.sigmoid(hidden @ self.weights.t() + self.visible_bias)

    def reconstruct(self, x: Tensor) -> Tensor:
        return self.decode(self.encode(x))

    def train(self, x: Tensor, learning_rate: float, extra_params: Optional[Sequence[Any]] = None) -> None:
        self.inputs = x
        x = self.inputs
        num_examples = x.shape[0]

        hidden = self.encode(x)
        reconstructed = self.decode(hidden)

        # 対数尤度の勾配 (上昇方向)
        visible_error = x - reconstructed
        hidden_error = (visible_error @ self.weights) * hidden * (1.0 - hidden)

        grad_w = (x.t() @ hidden_error + visible_error.t() @ hidden) / num_examples
        grad_hidden_bias = hidden_error.mean(dim=0)
        grad_visible_bias = visible_error.mean(dim=0)

        if self.use_regularization:
            grad_w = grad_w - self.l2 * self.weights

        if self.use_adagrad:
            step_w = self.adagrad.adjust(grad_w)
        else:
            step_w = learning_rate * grad_w

        self.weights.add_(step_w)
        self.hidden_bias.add_(learning_rate * grad_hidden_bias)
        self.visible_bias.add_(learning_rate * grad_visible_bias)

    def loss_function(self, params: Optional[Sequence[Any]] = None) -> float:
        return self.reconstruction_cross_entropy()
