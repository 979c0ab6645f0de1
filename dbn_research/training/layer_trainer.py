# dbn_research/training/layer_trainer.py
# Title: 単層事前学習トレーナー
# Description:
#   1つの事前学習レイヤーをミニバッチで学習させる。num_shards > 1 の場合、
#   データを分割して duplicate() したワーカーごとに学習し、コーディネータ (元のレイヤー) へ
#   merge() を1つずつ順番に適用する。マージの直列化はこのループが保証する。

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import torch
from omegaconf import DictConfig, OmegaConf
from tqdm import tqdm

from dbn_research.config.schema import TrainingConfig
from dbn_research.io.persistence import save_layer
from dbn_research.layers.abstract_layer import AbstractPretrainLayer

logger = logging.getLogger(__name__)


class LayerTrainer:
    """
    AbstractPretrainLayer の学習ループ。
    """

    def __init__(
        self,
        layer: AbstractPretrainLayer,
        config: Optional[Union[DictConfig, Dict[str, Any]]] = None,
        save_dir: Optional[str] = None
    ):
        self.layer = layer

        schema = OmegaConf.structured(TrainingConfig)
        if config is None:
            self.config = schema
        elif isinstance(config, dict):
            self.config = OmegaConf.merge(schema, OmegaConf.create(config))
        else:
            self.config = OmegaConf.merge(schema, config)

        if self.config.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.config.batch_size}")
        if self.config.num_shards < 1:
            raise ValueError(f"num_shards must be positive, got {self.config.num_shards}")

        self.save_dir = Path(save_dir or self.config.save_dir)
        self.current_epoch = 0
        self._shuffle_generator = torch.Generator(device="cpu")
        self._shuffle_generator.manual_seed(int(self.config.seed))

    def _train_batches(self, layer: AbstractPretrainLayer, data: torch.Tensor, indices: torch.Tensor) -> None:
        lr = float(self.config.learning_rate)
        for batch_indices in indices.split(int(self.config.batch_size)):
            layer.train(data[batch_indices], lr)

    def train_epoch(self, data: torch.Tensor) -> Dict[str, float]:
        """1エポック分の学習を行い、学習後の再構成指標を返す。"""
        permutation = torch.randperm(data.shape[0], generator=self._shuffle_generator)

        num_shards = int(self.config.num_shards)
        if num_shards == 1:
            self._train_batches(self.layer, data, permutation)
        else:
            for shard in permutation.chunk(num_shards):
                worker = self.layer.duplicate()
                self._train_batches(worker, data, shard)
                self.layer.merge(worker, int(self.config.merge_batch_size))
            logger.debug(f"Merged {num_shards} worker shards into coordinator layer")

        self.layer.inputs = data
        return {
            "cross_entropy": self.layer.reconstruction_cross_entropy(),
            "squared_loss": self.layer.squared_loss(),
        }

    def fit(self, data: torch.Tensor) -> Dict[str, List[float]]:
        """
        Args:
            data (Tensor): 学習データ (N, num_visible)。

        Returns:
            エポックごとの 'cross_entropy' と 'squared_loss' の履歴。
        """
        data = torch.as_tensor(data, dtype=self.layer.weights.dtype)
        if data.dim() != 2 or data.shape[1] != self.layer.num_visible or data.shape[0] == 0:
            raise ValueError(
                f"data must be a non-empty (N, {self.layer.num_visible}) tensor, got {tuple(data.shape)}")

        history: Dict[str, List[float]] = {"cross_entropy": [], "squared_loss": []}
        epochs = int(self.config.epochs)
        for epoch in tqdm(range(epochs), desc="Pretraining", disable=epochs < 2):
            self.current_epoch = epoch
            metrics = self.train_epoch(data)
            for key, value in metrics.items():
                history[key].append(value)

            if epoch % max(1, int(self.config.log_interval)) == 0:
                logger.info(
                    f"Epoch {epoch}: cross_entropy={metrics['cross_entropy']:.6f}, "
                    f"squared_loss={metrics['squared_loss']:.6f}")

        return history

    def save_checkpoint(self, filename: str = "layer.pt") -> Path:
        path = self.save_dir / filename
        save_layer(self.layer, path)
        return path
