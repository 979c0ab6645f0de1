# dbn_research/layers/__init__.py
# 具象レイヤーをインポートして LayerRegistry に登録する

from .abstract_layer import AbstractPretrainLayer
from .autoencoder import AutoEncoderLayer

__all__ = [
    "AbstractPretrainLayer",
    "AutoEncoderLayer",
]
