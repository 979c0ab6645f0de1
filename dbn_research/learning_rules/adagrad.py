# ファイルパス: dbn_research/learning_rules/adagrad.py
# 日本語タイトル: AdaGrad 適応学習率トラッカー
# 機能説明:
#   重み行列と同じ形状で二乗勾配の累積和を保持し、要素ごとの学習率を算出する。
#   累積履歴は明示的に新しいトラッカーを割り当てたときのみリセットされる。

from typing import Any, Dict, Tuple

import torch

from dbn_research.core.exceptions import InvalidDimensionError


class AdaGrad:
    """
    パラメータごとの二乗勾配履歴に基づく学習率スケーラ。

    lr_ij = master_step_size / (sqrt(sum_t g_ij^2) + fudge_factor)
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        master_step_size: float = 1e-1,
        fudge_factor: float = 1e-6,
        decay_lr: bool = False,
        lr_decay: float = 0.95,
        min_learning_rate: float = 1e-4,
        dtype: torch.dtype = torch.float64
    ):
        if rows < 1 or cols < 1:
            raise InvalidDimensionError(f"AdaGrad shape must be positive, got ({rows}, {cols})")
        self.rows = int(rows)
        self.cols = int(cols)
        self.master_step_size = master_step_size
        self.fudge_factor = fudge_factor
        self.decay_lr = decay_lr
        self.lr_decay = lr_decay
        self.min_learning_rate = min_learning_rate
        self.num_iterations = 0
        self.historical_gradient = torch.zeros(self.rows, self.cols, dtype=dtype)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    def get_learning_rates(self, gradient: torch.Tensor) -> torch.Tensor:
        """勾配を履歴に加算し、要素ごとの学習率行列を返す。"""
        if tuple(gradient.shape) != self.shape:
            raise InvalidDimensionError(
                f"Gradient shape {tuple(gradient.shape)} does not match tracker shape {self.shape}")

        gradient = gradient.to(self.historical_gradient.dtype)
        self.historical_gradient.add_(gradient.pow(2))
        self.num_iterations += 1

        rates = self.master_step_size / (self.historical_gradient.sqrt() + self.fudge_factor)

        if self.decay_lr:
            self.master_step_size = max(self.master_step_size * self.lr_decay, self.min_learning_rate)

        return rates

    def adjust(self, gradient: torch.Tensor) -> torch.Tensor:
        """学習率を掛けた更新量を返す。"""
        return self.get_learning_rates(gradient) * gradient.to(self.historical_gradient.dtype)

    def state_dict(self) -> Dict[str, Any]:
        return {
            "rows": self.rows,
            "cols": self.cols,
            "master_step_size": self.master_step_size,
            "fudge_factor": self.fudge_factor,
            "decay_lr": self.decay_lr,
            "lr_decay": self.lr_decay,
            "min_learning_rate": self.min_learning_rate,
            "num_iterations": self.num_iterations,
            "historical_gradient": self.historical_gradient.clone(),
        }

    @classmethod
    def from_state_dict(cls, state: Dict[str, Any]) -> "AdaGrad":
        history = state["historical_gradient"]
        tracker = cls(
            rows=int(state["rows"]),
            cols=int(state["cols"]),
            master_step_size=float(state["master_step_size"]),
            fudge_factor=float(state["fudge_factor"]),
            decay_lr=bool(state["decay_lr"]),
            lr_decay=float(state["lr_decay"]),
            min_learning_rate=float(state["min_learning_rate"]),
            dtype=history.dtype
        )
        if tuple(history.shape) != tracker.shape:
            raise InvalidDimensionError(
                f"Stored history shape {tuple(history.shape)} does not match ({tracker.rows}, {tracker.cols})")
        tracker.historical_gradient = history.clone()
        tracker.num_iterations = int(state["num_iterations"])
        return tracker

    def __repr__(self) -> str:
        return (f"AdaGrad(shape={self.shape}, master_step_size={self.master_step_size}, "
                f"iterations={self.num_iterations})")
