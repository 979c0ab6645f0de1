# dbn_research/config/schema.py

from dataclasses import dataclass, field
from typing import Optional
from omegaconf import MISSING


@dataclass
class DistributionConfig:
    type: str = "normal"  # normal, uniform
    mean: float = 0.0
    std: float = 0.01
    # For uniform
    low: float = -0.01
    high: float = 0.01


@dataclass
class LayerConfig:
    # LayerRegistry に登録された型名
    type: str = "autoencoder"
    num_visible: int = MISSING
    num_hidden: int = MISSING
    seed: int = 123

    sparsity: float = 0.01
    l2: float = 0.01
    momentum: float = 0.1
    fan_in: float = 0.1
    use_regularization: bool = True
    use_adagrad: bool = False
    render_weights_every_num_epochs: int = -1

    distribution: DistributionConfig = field(default_factory=DistributionConfig)


@dataclass
class TrainingConfig:
    epochs: int = 10
    batch_size: int = 32
    learning_rate: float = 0.1
    # 1より大きい場合、データを分割して duplicate したワーカーで学習しマージする
    num_shards: int = 1
    merge_batch_size: int = 1
    seed: int = 42
    log_interval: int = 1
    save_dir: str = "workspace/runs/checkpoints"
    input_path: Optional[str] = None


@dataclass
class Config:
    layer: LayerConfig = field(default_factory=LayerConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
