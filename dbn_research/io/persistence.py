# ファイルパス: dbn_research/io/persistence.py
# 日本語タイトル: レイヤー状態の永続化 (バージョン付きスキーマ)
# 機能説明:
#   レイヤーのパラメータストア全体をバージョン付きの辞書として torch.save でバイト列化し、
#   torch.load(weights_only=True) で復元する。
#   読み込みは完全な検証が終わってから update() で既存インスタンスへ取り込むため、
#   失敗時に対象レイヤーは変更されない。

from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, Union
import io
import logging
import numbers
import os

import torch

from dbn_research.core.distributions import SamplingDistribution, build_distribution
from dbn_research.core.exceptions import ConstructionError, LayerError, PersistenceError
from dbn_research.core.layer_registry import LayerRegistry
from dbn_research.core.parameters import initialize_parameters
from dbn_research.learning_rules.adagrad import AdaGrad

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

StreamOrPath = Union[BinaryIO, str, "os.PathLike[str]"]

_REQUIRED_KEYS = (
    "format_version", "layer_type", "num_visible", "num_hidden",
    "weights", "hidden_bias", "visible_bias",
    "l2", "use_regularization", "use_adagrad", "momentum", "sparsity", "fan_in",
    "random_state", "adagrad",
)


def _as_real(state: Dict[str, Any], key: str) -> float:
    value = state[key]
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise PersistenceError(f"'{key}' must be a real number, got {value!r}")
    return float(value)


def _as_flag(state: Dict[str, Any], key: str) -> bool:
    value = state[key]
    if not isinstance(value, bool):
        raise PersistenceError(f"'{key}' must be a bool, got {value!r}")
    return value


@dataclass
class LayerSnapshot:
    """レイヤーの全状態のメモリ上スナップショット。update() の入力として使える。"""
    layer_type: Optional[str]
    num_visible: int
    num_hidden: int
    weights: torch.Tensor
    hidden_bias: torch.Tensor
    visible_bias: torch.Tensor
    l2: float
    use_regularization: bool
    use_adagrad: bool
    momentum: float
    sparsity: float
    fan_in: Optional[float]
    random_source: torch.Generator
    adagrad: AdaGrad
    distribution: SamplingDistribution

    @classmethod
    def from_layer(cls, layer) -> "LayerSnapshot":
        try:
            layer_type = LayerRegistry.name_of(layer.factory)
        except LayerError:
            layer_type = None
        return cls(
            layer_type=layer_type,
            num_visible=layer.num_visible,
            num_hidden=layer.num_hidden,
            weights=layer.weights.detach().clone(),
            hidden_bias=layer.hidden_bias.detach().clone(),
            visible_bias=layer.visible_bias.detach().clone(),
            l2=layer.l2,
            use_regularization=layer.use_regularization,
            use_adagrad=layer.use_adagrad,
            momentum=layer.momentum,
            sparsity=layer.sparsity,
            fan_in=layer._fan_in,
            random_source=layer.random_source,
            adagrad=layer.adagrad,
            distribution=layer.distribution
        )

    def to_state(self) -> Dict[str, Any]:
        return {
            "format_version": FORMAT_VERSION,
            "layer_type": self.layer_type,
            "num_visible": int(self.num_visible),
            "num_hidden": int(self.num_hidden),
            "weights": self.weights,
            "hidden_bias": self.hidden_bias,
            "visible_bias": self.visible_bias,
            "l2": float(self.l2),
            "use_regularization": bool(self.use_regularization),
            "use_adagrad": bool(self.use_adagrad),
            "momentum": float(self.momentum),
            "sparsity": float(self.sparsity),
            "fan_in": None if self.fan_in is None else float(self.fan_in),
            "random_state": self.random_source.get_state(),
            "adagrad": self.adagrad.state_dict(),
            "distribution": self.distribution.to_config(),
        }

    @classmethod
    def from_state(cls, state: Any) -> "LayerSnapshot":
        """torch.load の結果を検証してスナップショットに変換する。失敗はすべて PersistenceError。"""
        if not isinstance(state, dict):
            raise PersistenceError(f"Expected a layer state dict, got {type(state).__name__}")

        missing = [key for key in _REQUIRED_KEYS if key not in state]
        if missing:
            raise PersistenceError(f"Layer state is missing keys: {missing}")

        version = state["format_version"]
        if version != FORMAT_VERSION:
            raise PersistenceError(
                f"Unsupported layer format version {version} (expected {FORMAT_VERSION})")

        try:
            layer_type = state["layer_type"]
            if layer_type is not None and not isinstance(layer_type, str):
                raise PersistenceError(f"'layer_type' must be a str or None, got {layer_type!r}")

            fan_in = state["fan_in"]
            if fan_in is not None:
                fan_in = _as_real(state, "fan_in")

            num_visible = int(state["num_visible"])
            num_hidden = int(state["num_hidden"])
            params = initialize_parameters(
                num_visible, num_hidden,
                weights=state["weights"],
                hidden_bias=state["hidden_bias"],
                visible_bias=state["visible_bias"])
            tracker = AdaGrad.from_state_dict(state["adagrad"])
            if tracker.shape != params.shape:
                raise PersistenceError(
                    f"AdaGrad shape {tracker.shape} does not match weights shape {params.shape}")
            generator = torch.Generator(device="cpu")
            generator.set_state(state["random_state"])
            distribution = build_distribution(state.get("distribution"))

            return cls(
                layer_type=layer_type,
                num_visible=num_visible,
                num_hidden=num_hidden,
                weights=params.weights,
                hidden_bias=params.hidden_bias,
                visible_bias=params.visible_bias,
                l2=_as_real(state, "l2"),
                use_regularization=_as_flag(state, "use_regularization"),
                use_adagrad=_as_flag(state, "use_adagrad"),
                momentum=_as_real(state, "momentum"),
                sparsity=_as_real(state, "sparsity"),
                fan_in=fan_in,
                random_source=generator,
                adagrad=tracker,
                distribution=distribution
            )
        except PersistenceError:
            raise
        except (LayerError, AttributeError, KeyError, TypeError, ValueError, RuntimeError) as e:
            raise PersistenceError(f"Corrupt layer state: {e}") from e


def save_layer(layer, target: StreamOrPath) -> None:
    """レイヤーの状態をストリームまたはファイルパスへ書き出す。"""
    state = LayerSnapshot.from_layer(layer).to_state()
    try:
        if isinstance(target, (str, os.PathLike)):
            path = Path(target)
            path.parent.mkdir(parents=True, exist_ok=True)
            torch.save(state, path)
            logger.info(f"💾 Saved layer {type(layer).__name__} ({layer.num_visible}x{layer.num_hidden}) to {path}")
        else:
            torch.save(state, target)
    except (OSError, RuntimeError) as e:
        raise PersistenceError(f"Failed to write layer state: {e}") from e


def read_snapshot(source: StreamOrPath) -> LayerSnapshot:
    """ストリームまたはファイルパスからスナップショットを読み込む。"""
    try:
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)
        state = torch.load(source, map_location="cpu", weights_only=True)
    except Exception as e:
        # torch.load は破損ストリームに対して多様な例外を送出する
        raise PersistenceError(f"Failed to read layer state: {e}") from e
    return LayerSnapshot.from_state(state)


def _restore_settings(layer, snapshot: LayerSnapshot) -> None:
    # update() が引き継がない設定
    layer.use_adagrad = snapshot.use_adagrad
    layer.fan_in = snapshot.fan_in
    layer.distribution = snapshot.distribution


def load_into(layer, source: StreamOrPath) -> None:
    """読み込んだ状態を既存インスタンスへ update() で取り込む。"""
    snapshot = read_snapshot(source)
    layer.update(snapshot)
    _restore_settings(layer, snapshot)
    logger.info(f"Loaded layer state into {type(layer).__name__} ({snapshot.num_visible}x{snapshot.num_hidden})")


def load_layer(source: StreamOrPath, layer_type: Optional[str] = None):
    """
    保存された状態から新しいレイヤーを生成する。

    Args:
        source: ストリームまたはファイルパス。
        layer_type: 具象レイヤー型名。None の場合は保存時の型名を使う。
    """
    snapshot = read_snapshot(source)
    type_name = layer_type or snapshot.layer_type
    if type_name is None:
        raise PersistenceError("Layer type is not recorded in the stream; pass layer_type explicitly.")

    from dbn_research.core.builder import LayerBuilder
    try:
        layer = (LayerBuilder()
                 .as_type(type_name)
                 .number_of_visible(snapshot.num_visible)
                 .num_hidden(snapshot.num_hidden)
                 .with_weights(snapshot.weights)
                 .with_hidden_bias(snapshot.hidden_bias)
                 .with_visible_bias(snapshot.visible_bias)
                 .with_random(snapshot.random_source)
                 .fan_in(-1.0 if snapshot.fan_in is None else snapshot.fan_in)
                 .with_distribution(snapshot.distribution)
                 .build())
    except ConstructionError as e:
        raise PersistenceError(f"Cannot rebuild layer of type {type_name!r}: {e}") from e
    layer.update(snapshot)
    _restore_settings(layer, snapshot)
    return layer
