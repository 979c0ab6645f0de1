# ファイルパス: dbn_research/utils/config_loader.py
# 日本語タイトル: レイヤー/学習設定のローダー
# 機能説明:
#   hydra の compose API で YAML を読み込み、Config スキーマ (layer + training) とマージして検証する。
#   CLI から渡される YAML ファイルパスは load_config_file() で扱う。

import os
from typing import List, Optional, cast

from hydra import compose, initialize_config_dir
from hydra.core.global_hydra import GlobalHydra
from omegaconf import DictConfig, OmegaConf

from dbn_research.config.schema import Config

DEFAULT_CONFIG_DIR = os.path.abspath(
    os.path.join(os.path.dirname(__file__), os.pardir, os.pardir, "configs"))


def load_config(
    config_name: str = "base_config",
    config_path: Optional[str] = None,
    overrides: Optional[List[str]] = None
) -> DictConfig:
    """
    設定ディレクトリ内の YAML を読み込み、スキーマで欠損値を補完した DictConfig を返す。

    Args:
        config_name: 設定名 (.yaml 拡張子は省略可)。
        config_path: 設定ディレクトリ。None の場合は configs/。
        overrides: "layer.num_hidden=256" 形式のオーバーライド。

    Raises:
        RuntimeError: 読み込み・検証に失敗した場合 (原因は __cause__)。
    """
    name, ext = os.path.splitext(config_name)
    if ext in (".yaml", ".yml"):
        config_name = name
    config_dir = os.path.abspath(config_path or DEFAULT_CONFIG_DIR)

    # compose は GlobalHydra の初期化を1回しか許さない
    GlobalHydra.instance().clear()
    try:
        with initialize_config_dir(version_base=None, config_dir=config_dir):
            cfg = compose(config_name=config_name, overrides=list(overrides or []))
        # num_visible / num_hidden が未指定ならここで MISSING のまま残る
        return cast(DictConfig, OmegaConf.merge(OmegaConf.structured(Config), cfg))
    except Exception as e:
        raise RuntimeError(
            f"Failed to load config '{config_name}' from '{config_dir}': {e}") from e


def load_config_file(path: str, overrides: Optional[List[str]] = None) -> DictConfig:
    """YAML ファイルパスから設定を読み込む。"""
    config_dir, config_name = os.path.split(os.path.abspath(path))
    return load_config(config_name, config_path=config_dir, overrides=overrides)
