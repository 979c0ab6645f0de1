# ファイルパス: dbn_research/core/builder.py
# 日本語タイトル: 事前学習レイヤーのビルダー
# 機能説明:
#   名前付きオプションからレイヤーを組み立てるフルーエントなビルダー。
#   concrete_type を LayerRegistry で解決し、標準シグネチャでファクトリを呼んだ後、
#   スカラー設定 (sparsity, l2, momentum など) をインスタンスへ適用する。

from typing import Any, Mapping, Optional, Union
import inspect
import logging

import torch
from omegaconf import DictConfig, OmegaConf

from dbn_research.core.distributions import (
    SamplingDistribution,
    build_distribution,
    create_random_source,
)
from dbn_research.core.exceptions import ConstructionError
from dbn_research.core.layer_registry import LayerFactory, LayerRegistry

logger = logging.getLogger(__name__)

# 標準コンストラクタの引数順
FACTORY_SIGNATURE = (
    "inputs", "num_visible", "num_hidden", "weights", "hidden_bias",
    "visible_bias", "random_source", "fan_in", "distribution",
)

BUILDER_SEED = 123


def _accepts_factory_signature(factory: LayerFactory) -> bool:
    try:
        signature = inspect.signature(factory)
    except (TypeError, ValueError):
        # シグネチャを取得できない組み込み callable は呼び出し時に判定する
        return True
    try:
        signature.bind(*([None] * len(FACTORY_SIGNATURE)))
    except TypeError:
        return False
    return True


class LayerBuilder:
    """
    レイヤー生成のためのフルーエントビルダー。

    Example:
        layer = (LayerBuilder()
                 .as_type("autoencoder")
                 .number_of_visible(784)
                 .num_hidden(500)
                 .with_l2(1e-3)
                 .build())
    """

    def __init__(self) -> None:
        self._concrete_type: Optional[Union[str, LayerFactory]] = None
        self._weights: Optional[torch.Tensor] = None
        self._visible_bias: Optional[torch.Tensor] = None
        self._hidden_bias: Optional[torch.Tensor] = None
        self._num_visible: int = 0
        self._num_hidden: int = 0
        self._random_source: torch.Generator = create_random_source(BUILDER_SEED)
        self._inputs: Optional[torch.Tensor] = None
        self._sparsity: float = 0.01
        self._l2: float = 0.01
        self._momentum: float = 0.1
        self._render_weights_every_num_epochs: int = -1
        self._fan_in: float = 0.1
        self._use_regularization: bool = True
        self._distribution: Optional[SamplingDistribution] = None
        self._use_adagrad: bool = False

    # --- オプション設定 ---
    def as_type(self, concrete_type: Union[str, LayerFactory]) -> "LayerBuilder":
        self._concrete_type = concrete_type
        return self

    def with_weights(self, weights: torch.Tensor) -> "LayerBuilder":
        self._weights = weights
        return self

    def with_visible_bias(self, visible_bias: torch.Tensor) -> "LayerBuilder":
        self._visible_bias = visible_bias
        return self

    def with_hidden_bias(self, hidden_bias: torch.Tensor) -> "LayerBuilder":
        self._hidden_bias = hidden_bias
        return self

    def number_of_visible(self, num_visible: int) -> "LayerBuilder":
        self._num_visible = num_visible
        return self

    def num_hidden(self, num_hidden: int) -> "LayerBuilder":
        self._num_hidden = num_hidden
        return self

    def with_random(self, random_source: torch.Generator) -> "LayerBuilder":
        self._random_source = random_source
        return self

    def with_seed(self, seed: int) -> "LayerBuilder":
        self._random_source = create_random_source(seed)
        return self

    def with_input(self, inputs: torch.Tensor) -> "LayerBuilder":
        self._inputs = inputs
        return self

    def with_sparsity(self, sparsity: float) -> "LayerBuilder":
        self._sparsity = sparsity
        return self

    def with_l2(self, l2: float) -> "LayerBuilder":
        self._l2 = l2
        return self

    def with_momentum(self, momentum: float) -> "LayerBuilder":
        self._momentum = momentum
        return self

    def render_weights(self, num_epochs: int) -> "LayerBuilder":
        self._render_weights_every_num_epochs = num_epochs
        return self

    def fan_in(self, fan_in: float) -> "LayerBuilder":
        self._fan_in = fan_in
        return self

    def use_regularization(self, use_regularization: bool) -> "LayerBuilder":
        self._use_regularization = use_regularization
        return self

    def with_distribution(self, distribution: SamplingDistribution) -> "LayerBuilder":
        self._distribution = distribution
        return self

    def use_adagrad(self, use_adagrad: bool) -> "LayerBuilder":
        self._use_adagrad = use_adagrad
        return self

    # --- 生成 ---
    def _resolve_factory(self) -> LayerFactory:
        if self._concrete_type is None:
            raise ConstructionError("Concrete layer type is not set. Call as_type() first.")
        # 組み込みレイヤーを登録させる
        import dbn_research.layers  # noqa: F401
        factory = LayerRegistry.get(self._concrete_type)
        if not _accepts_factory_signature(factory):
            raise ConstructionError(
                f"{getattr(factory, '__name__', factory)!r} has no constructor accepting "
                f"{FACTORY_SIGNATURE}")
        return factory

    def build(self) -> Any:
        factory = self._resolve_factory()
        try:
            layer = factory(
                self._inputs, self._num_visible, self._num_hidden,
                self._weights, self._hidden_bias, self._visible_bias,
                self._random_source, self._fan_in, self._distribution)
        except ConstructionError:
            raise
        except Exception as e:
            raise ConstructionError(
                f"Failed to build layer {getattr(factory, '__name__', factory)!r}: {e}") from e

        layer.sparsity = self._sparsity
        layer.render_weights_every_num_epochs = self._render_weights_every_num_epochs
        layer.l2 = self._l2
        layer.momentum = self._momentum
        layer.use_regularization = self._use_regularization
        layer.use_adagrad = self._use_adagrad

        logger.info(f"🏗️ Built layer {type(layer).__name__} ({layer.num_visible}x{layer.num_hidden})")
        return layer

    def build_empty(self) -> Any:
        """次元のみを設定したレイヤーを生成する (パラメータは初期化ポリシーで補完)。"""
        factory = self._resolve_factory()
        try:
            return factory(None, self._num_visible, self._num_hidden,
                           None, None, None, self._random_source, self._fan_in, self._distribution)
        except Exception as e:
            raise ConstructionError(
                f"Failed to build empty layer {getattr(factory, '__name__', factory)!r}: {e}") from e

    @classmethod
    def from_config(cls, config: Union[DictConfig, Mapping[str, Any]]) -> "LayerBuilder":
        """LayerConfig (DictConfig または dict) からビルダーを準備する。"""
        if isinstance(config, DictConfig):
            config = OmegaConf.to_container(config, resolve=True)

        builder = cls()
        builder.as_type(config.get("type", "autoencoder"))
        builder.number_of_visible(config["num_visible"])
        builder.num_hidden(config["num_hidden"])
        builder.with_seed(config.get("seed", BUILDER_SEED))
        builder.with_sparsity(config.get("sparsity", 0.01))
        builder.with_l2(config.get("l2", 0.01))
        builder.with_momentum(config.get("momentum", 0.1))
        builder.render_weights(config.get("render_weights_every_num_epochs", -1))
        builder.fan_in(config.get("fan_in", 0.1))
        builder.use_regularization(config.get("use_regularization", True))
        builder.use_adagrad(config.get("use_adagrad", False))
        builder.with_distribution(build_distribution(config.get("distribution")))
        return builder
