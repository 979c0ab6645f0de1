# ファイルパス: tests/conftest.py
# 日本語タイトル: Pytest用設定ファイル
# 目的: プロジェクトルートへのパスを通し、テスト用のスタブレイヤーと共通フィクスチャを提供する。

import sys
import os
import pytest
import torch

# プロジェクトルートの絶対パスを取得 (tests/../)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# sys.pathの先頭に追加して、インストールされていない状態でもインポート可能にする
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from dbn_research.core.distributions import create_random_source  # noqa: E402
from dbn_research.layers.abstract_layer import AbstractPretrainLayer  # noqa: E402
from dbn_research.layers.autoencoder import AutoEncoderLayer  # noqa: E402


class IdentityLayer(AbstractPretrainLayer):
    """reconstruct() が入力をそのまま返すスタブ。"""

    def reconstruct(self, x):
        return torch.as_tensor(x, dtype=self.weights.dtype).clone()

    def train(self, x, learning_rate, extra_params=None):
        self.inputs = x

    def loss_function(self, params=None):
        return self.squared_loss()


@pytest.fixture(scope="session")
def project_root():
    """プロジェクトルートパスを提供するフィクスチャ"""
    return PROJECT_ROOT


@pytest.fixture
def identity_layer_cls():
    return IdentityLayer


@pytest.fixture
def make_layer():
    """次元とシードを指定してレイヤーを生成するファクトリ"""
    def _make(num_visible=4, num_hidden=3, seed=7, cls=AutoEncoderLayer, **kwargs):
        return cls(None, num_visible, num_hidden,
                   random_source=create_random_source(seed), **kwargs)
    return _make


@pytest.fixture
def binary_batch():
    generator = torch.Generator().manual_seed(0)
    return (torch.rand(8, 6, generator=generator) > 0.5).to(torch.float64)
