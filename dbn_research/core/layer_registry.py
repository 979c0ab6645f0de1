# ファイルパス: dbn_research/core/layer_registry.py
# 日本語タイトル: 具象レイヤー型レジストリ
# 機能説明:
#   レイヤー型名と生成関数 (ファクトリ) の対応表。
#   ファクトリは標準コンストラクタシグネチャ
#   (input, num_visible, num_hidden, weights, hidden_bias, visible_bias,
#    random_source, fan_in, distribution) を受け付ける callable。
#   transpose/duplicate/ビルダーはリフレクションではなくここから明示的にファクトリを得る。

from typing import Any, Callable, Dict, List, Union
import logging

from dbn_research.core.exceptions import ConstructionError

logger = logging.getLogger(__name__)

LayerFactory = Callable[..., Any]


class LayerRegistry:
    """
    レイヤー型名とファクトリをマッピングするレジストリ。
    """
    _registry: Dict[str, LayerFactory] = {}

    @classmethod
    def register(cls, name: str):
        def decorator(factory: LayerFactory) -> LayerFactory:
            if name in cls._registry:
                logger.warning(
                    f"Layer type '{name}' is already registered. Overwriting.")
            cls._registry[name] = factory
            return factory
        return decorator

    @classmethod
    def get(cls, key: Union[str, LayerFactory]) -> LayerFactory:
        """型名、または登録済みのクラス/callable からファクトリを引く。"""
        if isinstance(key, str):
            if key not in cls._registry:
                raise ConstructionError(
                    f"Unknown layer type '{key}'. Available layer types: {cls.available()}")
            return cls._registry[key]

        if key in cls._registry.values():
            return key
        raise ConstructionError(
            f"Layer factory {getattr(key, '__name__', key)!r} is not registered. "
            f"Available layer types: {cls.available()}")

    @classmethod
    def name_of(cls, factory: LayerFactory) -> str:
        for name, registered in cls._registry.items():
            if registered is factory:
                return name
        raise ConstructionError(
            f"Layer factory {getattr(factory, '__name__', factory)!r} is not registered.")

    @classmethod
    def available(cls) -> List[str]:
        return list(cls._registry.keys())

    @classmethod
    def unregister(cls, name: str) -> None:
        cls._registry.pop(name, None)
