# ファイルパス: dbn_research/layers/abstract_layer.py
# 日本語タイトル: 事前学習レイヤーの抽象基底クラス
# 機能説明:
#   DBN の1層として使われる教師なしレイヤー (RBM, Denoising AutoEncoder など) の共通実装。
#   パラメータ初期化・再構成誤差評価・並列ワーカーのマージ・AdaGrad の管理を担い、
#   具象クラスは reconstruct() / train() / loss_function() のみを実装する。
#
#   数値処理は core.parameters / core.objectives / core.merge に委譲する。
#   transpose()/duplicate() は明示的なファクトリ (既定では具象クラス自身) で同じ型を生成する。

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Callable, Optional, Sequence, Tuple, Union
import logging
import os

import torch
from torch import Tensor

from dbn_research.core import objectives
from dbn_research.core.distributions import (
    SamplingDistribution,
    create_random_source,
    default_distribution,
)
from dbn_research.core.exceptions import (
    ConstructionError,
    InvalidDimensionError,
    PreconditionError,
)
from dbn_research.core.merge import merge_parameters
from dbn_research.core.parameters import (
    LayerParameters,
    check_dimensions,
    initialize_parameters,
    sample_weight_matrix,
)
from dbn_research.learning_rules.adagrad import AdaGrad

logger = logging.getLogger(__name__)

StreamOrPath = Union[BinaryIO, str, "os.PathLike[str]"]


class AbstractPretrainLayer(ABC):
    """
    DBN の構成要素となる事前学習レイヤーの抽象基底クラス。

    Attributes:
        num_visible (int): 可視ユニット数。
        num_hidden (int): 隠れユニット数。
        inputs (Tensor | None): 学習/評価に使う入力バッチ (行 = 事例, 列 = num_visible)。
        l2 (float): L2 正則化係数。
        sparsity (float): 隠れユニットの目標スパース率。
        momentum (float): モメンタム係数。
        use_regularization (bool): L2 正則化とマージ時の batch_size 減衰を有効にする。
        use_adagrad (bool): AdaGrad による要素ごとの学習率を使う。
        random_source (torch.Generator): サンプリング用乱数源。transpose/duplicate で参照共有される。
        distribution (SamplingDistribution): 重み初期化の分布。
    """

    def __init__(
        self,
        inputs: Optional[Tensor],
        num_visible: int,
        num_hidden: int,
        weights: Optional[Tensor] = None,
        hidden_bias: Optional[Tensor] = None,
        visible_bias: Optional[Tensor] = None,
        random_source: Optional[torch.Generator] = None,
        fan_in: Optional[float] = -1.0,
        distribution: Optional[SamplingDistribution] = None,
        factory: Optional[Callable[..., "AbstractPretrainLayer"]] = None
    ) -> None:
        # 確保より先に次元を検証する
        check_dimensions(num_visible, num_hidden)

        self.num_visible: int = int(num_visible)
        self.num_hidden: int = int(num_hidden)
        self.random_source: torch.Generator = random_source if random_source is not None \
            else create_random_source()
        self.distribution: SamplingDistribution = distribution if distribution is not None \
            else default_distribution()
        self._fan_in: Optional[float] = fan_in
        self.factory: Callable[..., AbstractPretrainLayer] = factory if factory is not None else type(self)

        self.sparsity: float = 0.01
        self.momentum: float = 0.1
        self.l2: float = 0.1
        self.use_regularization: bool = True
        self.use_adagrad: bool = False
        self.render_weights_every_num_epochs: int = -1

        self._params: LayerParameters = initialize_parameters(
            self.num_visible, self.num_hidden,
            weights=weights,
            hidden_bias=hidden_bias,
            visible_bias=visible_bias,
            distribution=self.distribution,
            generator=self.random_source
        )
        self._adagrad: AdaGrad = self._new_adagrad()

        self._inputs: Optional[Tensor] = None
        if inputs is not None:
            self.inputs = inputs

    # ------------------------------------------------------------------
    # パラメータアクセス
    # ------------------------------------------------------------------
    @property
    def params(self) -> LayerParameters:
        return self._params

    @property
    def weights(self) -> Tensor:
        return self._params.weights

    @weights.setter
    def weights(self, value: Tensor) -> None:
        value = torch.as_tensor(value)
        if tuple(value.shape) != (self.num_visible, self.num_hidden):
            raise InvalidDimensionError(
                f"weights must have shape {(self.num_visible, self.num_hidden)}, "
                f"got {tuple(value.shape)}. Use set_parameters() to resize the layer.")
        self._params.weights = value

    @property
    def hidden_bias(self) -> Tensor:
        return self._params.hidden_bias

    @hidden_bias.setter
    def hidden_bias(self, value: Tensor) -> None:
        value = torch.as_tensor(value)
        if tuple(value.shape) != (self.num_hidden,):
            raise InvalidDimensionError(
                f"hidden_bias must have shape {(self.num_hidden,)}, got {tuple(value.shape)}")
        self._params.hidden_bias = value

    @property
    def visible_bias(self) -> Tensor:
        return self._params.visible_bias

    @visible_bias.setter
    def visible_bias(self, value: Tensor) -> None:
        value = torch.as_tensor(value)
        if tuple(value.shape) != (self.num_visible,):
            raise InvalidDimensionError(
                f"visible_bias must have shape {(self.num_visible,)}, got {tuple(value.shape)}")
        self._params.visible_bias = value

    def set_parameters(self, weights: Tensor, hidden_bias: Tensor, visible_bias: Tensor) -> None:
        """
        重みと両バイアスを一括で差し替える。形状が変わる場合は次元を更新し、
        AdaGrad トラッカーを新しい形状で作り直す。
        """
        weights = torch.as_tensor(weights)
        if weights.dim() != 2:
            raise InvalidDimensionError(f"weights must be 2-D, got {weights.dim()}-D")
        num_visible, num_hidden = int(weights.shape[0]), int(weights.shape[1])
        params = initialize_parameters(
            num_visible, num_hidden, weights=weights,
            hidden_bias=hidden_bias, visible_bias=visible_bias)

        self.num_visible, self.num_hidden = num_visible, num_hidden
        self._params = params
        if self._adagrad.shape != params.shape:
            self._adagrad = self._new_adagrad()

    @property
    def adagrad(self) -> AdaGrad:
        return self._adagrad

    @adagrad.setter
    def adagrad(self, tracker: AdaGrad) -> None:
        if tracker.shape != self._params.shape:
            raise InvalidDimensionError(
                f"AdaGrad shape {tracker.shape} does not match weights shape {self._params.shape}")
        self._adagrad = tracker

    def _new_adagrad(self) -> AdaGrad:
        rows, cols = self._params.shape
        return AdaGrad(rows, cols, dtype=self._params.weights.dtype)

    @property
    def fan_in(self) -> float:
        """未設定または負の場合は 1 / num_visible。"""
        if self._fan_in is None or self._fan_in < 0:
            return 1.0 / self.num_visible
        return self._fan_in

    @fan_in.setter
    def fan_in(self, value: Optional[float]) -> None:
        self._fan_in = value

    @property
    def inputs(self) -> Optional[Tensor]:
        return self._inputs

    @inputs.setter
    def inputs(self, value: Optional[Tensor]) -> None:
        if value is None:
            self._inputs = None
            return
        value = torch.as_tensor(value, dtype=self._params.weights.dtype)
        if value.dim() != 2 or value.shape[1] != self.num_visible:
            raise InvalidDimensionError(
                f"inputs must have shape (N, {self.num_visible}), got {tuple(value.shape)}")
        if value.shape[0] == 0:
            raise InvalidDimensionError("inputs must contain at least one example, got an empty batch")
        self._inputs = value

    def _require_inputs(self) -> Tensor:
        if self._inputs is None:
            raise PreconditionError("Input must be set before evaluating the reconstruction loss.")
        return self._inputs

    # ------------------------------------------------------------------
    # 目的関数
    # ------------------------------------------------------------------
    def l2_regularized_coefficient(self) -> float:
        return objectives.l2_regularized_coefficient(self.weights, self.l2)

    def reconstruction_cross_entropy(self) -> float:
        """
        入力と、隠れ層を経由して再構成した可視確率とのクロスエントロピー。
        正則化有効時は (要素数 + L2ペナルティ) で正規化される。
        """
        return objectives.reconstruction_cross_entropy(
            self._require_inputs(), self._params, self.l2, self.use_regularization)

    def squared_loss(self) -> float:
        """reconstruct() による二乗再構成誤差の負値 (大きいほど良い)。"""
        inputs = self._require_inputs()
        reconstructed = self.reconstruct(inputs)
        return objectives.squared_reconstruction_loss(
            inputs, reconstructed, self.weights, self.l2, self.use_regularization)

    # ------------------------------------------------------------------
    # マージ / 状態コピー
    # ------------------------------------------------------------------
    def merge(self, peer: "AbstractPretrainLayer", batch_size: int) -> None:
        """ピアのパラメータへ向けて自パラメータを近づける。ピアは変更しない。"""
        merge_parameters(self._params, peer.params, batch_size, self.use_regularization)

    def update(self, source: Any) -> None:
        """
        source (レイヤーまたは LayerSnapshot) の状態で無条件に上書きする。
        永続化からの復元にも使われる。テンソルは参照として引き継ぐ。
        """
        num_visible, num_hidden = int(source.num_visible), int(source.num_hidden)
        params = initialize_parameters(
            num_visible, num_hidden,
            weights=source.weights,
            hidden_bias=source.hidden_bias,
            visible_bias=source.visible_bias)
        tracker = source.adagrad
        if tracker is None or tracker.shape != params.shape:
            tracker = AdaGrad(num_visible, num_hidden, dtype=params.weights.dtype)

        self._params = params
        self.l2 = source.l2
        self.use_regularization = source.use_regularization
        self.momentum = source.momentum
        self.num_hidden = num_hidden
        self.num_visible = num_visible
        self.random_source = source.random_source
        self.sparsity = source.sparsity
        self._adagrad = tracker
        # 次元が変わった場合、既存の入力は無効
        if self._inputs is not None and self._inputs.shape[1] != num_visible:
            self._inputs = None

    def _copy_settings_to(self, other: "AbstractPretrainLayer") -> None:
        other.l2 = self.l2
        other.sparsity = self.sparsity
        other.momentum = self.momentum
        other.use_regularization = self.use_regularization
        other.use_adagrad = self.use_adagrad
        other.render_weights_every_num_epochs = self.render_weights_every_num_epochs

    # ------------------------------------------------------------------
    # 対称変換
    # ------------------------------------------------------------------
    def _spawn(self, num_visible: int, num_hidden: int, params: LayerParameters) -> "AbstractPretrainLayer":
        try:
            layer = self.factory(
                None, num_visible, num_hidden,
                params.weights, params.hidden_bias, params.visible_bias,
                self.random_source, self._fan_in, self.distribution)
        except ConstructionError:
            raise
        except Exception as e:
            raise ConstructionError(
                f"Failed to instantiate {getattr(self.factory, '__name__', self.factory)!r}: {e}") from e

        if not isinstance(layer, AbstractPretrainLayer):
            raise ConstructionError(
                f"Factory returned {type(layer).__name__}, expected an AbstractPretrainLayer")
        layer.factory = self.factory
        self._copy_settings_to(layer)
        return layer

    def transpose(self) -> "AbstractPretrainLayer":
        """
        可視/隠れの役割を入れ替えた同型のレイヤーを返す。
        乱数源・分布は参照共有。AdaGrad は形状が一致する場合 (正方行列) のみ共有し、
        それ以外は新しい形状のトラッカーを持つ。
        """
        layer = self._spawn(self.num_hidden, self.num_visible, self._params.transposed())
        if self._adagrad.shape == layer.params.shape:
            layer._adagrad = self._adagrad
        return layer

    def duplicate(self) -> "AbstractPretrainLayer":
        """重み/バイアスを深いコピーし、乱数源・分布・AdaGrad を共有する同型レイヤーを返す。"""
        layer = self._spawn(self.num_visible, self.num_hidden, self._params.clone())
        layer._adagrad = self._adagrad
        return layer

    def __copy__(self) -> "AbstractPretrainLayer":
        return self.duplicate()

    def jostle_weight_matrix(self) -> Tensor:
        """
        現在の重みと同形状の行列を初期化ポリシーで再サンプリングして返す。
        ライブの重みは変更しない (診断用)。乱数源は消費する。
        """
        return sample_weight_matrix(
            self.num_visible, self.num_hidden, self.distribution, self.random_source,
            dtype=self.weights.dtype)

    # ------------------------------------------------------------------
    # 永続化
    # ------------------------------------------------------------------
    def snapshot(self):
        from dbn_research.io.persistence import LayerSnapshot
        return LayerSnapshot.from_layer(self)

    def write(self, stream: StreamOrPath) -> None:
        from dbn_research.io.persistence import save_layer
        save_layer(self, stream)

    def load(self, stream: StreamOrPath) -> None:
        """ストリームから復元し、このインスタンスへ update() で取り込む。"""
        from dbn_research.io.persistence import load_into
        load_into(self, stream)

    # ------------------------------------------------------------------
    # 具象クラスが実装するフック
    # ------------------------------------------------------------------
    @abstractmethod
    def reconstruct(self, x: Tensor) -> Tensor:
        """入力をレイヤーに通して可視空間へ戻した再構成を返す (副作用なし)。"""
        raise NotImplementedError

    @abstractmethod
    def train(self, x: Tensor, learning_rate: float, extra_params: Optional[Sequence[Any]] = None) -> None:
        """
        1イテレーション分の学習を行う。

        Args:
            x (Tensor): 入力バッチ。
            learning_rate (float): 学習率。
            extra_params: 具象レイヤー固有の追加パラメータ (CD の k, ノイズ率など)。
        """
        raise NotImplementedError

    @abstractmethod
    def loss_function(self, params: Optional[Sequence[Any]] = None) -> float:
        raise NotImplementedError

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.num_visible, self.num_hidden)

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(num_visible={self.num_visible}, num_hidden={self.num_hidden}, "
                f"l2={self.l2}, use_regularization={self.use_regularization}, "
                f"use_adagrad={self.use_adagrad})")
