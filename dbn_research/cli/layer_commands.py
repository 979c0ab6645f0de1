# dbn_research/cli/layer_commands.py

import click
import logging

import torch

from dbn_research.core.builder import LayerBuilder
from dbn_research.io.persistence import load_layer, save_layer
from dbn_research.training.layer_trainer import LayerTrainer
from dbn_research.utils.config_loader import load_config_file

logger = logging.getLogger("dbn_cli")


@click.command(name="init")
@click.option('--config', default="configs/base_config.yaml", type=click.Path(exists=True),
              help="設定YAMLファイル。")
@click.option('--override-config', multiple=True, help="Override config (e.g. layer.num_hidden=256)")
@click.option('--output', required=True, type=click.Path(), help="保存先 (.pt)。")
def init_layer(config, override_config, output):
    """設定からレイヤーを生成して保存"""
    cfg = load_config_file(config, list(override_config))
    layer = LayerBuilder.from_config(cfg.layer).build()
    save_layer(layer, output)
    click.echo(f"Initialized {type(layer).__name__} {layer.num_visible}x{layer.num_hidden} -> {output}")


@click.command(name="inspect")
@click.argument('layer_path', type=click.Path(exists=True))
def inspect_layer(layer_path):
    """保存済みレイヤーの概要を表示"""
    layer = load_layer(layer_path)
    weights = layer.weights
    click.echo(f"type: {type(layer).__name__}")
    click.echo(f"num_visible: {layer.num_visible}")
    click.echo(f"num_hidden: {layer.num_hidden}")
    click.echo(f"l2: {layer.l2}  use_regularization: {layer.use_regularization}  "
               f"use_adagrad: {layer.use_adagrad}")
    click.echo(f"weights: mean={weights.mean().item():.6f} std={weights.std().item():.6f} "
               f"min={weights.min().item():.6f} max={weights.max().item():.6f}")
    click.echo(f"adagrad iterations: {layer.adagrad.num_iterations}")


@click.command(name="pretrain")
@click.option('--config', default="configs/base_config.yaml", type=click.Path(exists=True),
              help="設定YAMLファイル。")
@click.option('--override-config', multiple=True, help="Override config (e.g. training.epochs=5)")
@click.option('--data-path', required=True, type=click.Path(exists=True),
              help="学習データ (torch.save したテンソル, shape=(N, num_visible))。")
@click.option('--resume-path', default=None, type=click.Path(exists=True),
              help="再開用のレイヤーファイル。")
@click.option('--output', required=True, type=click.Path(), help="学習後の保存先 (.pt)。")
def pretrain_layer(config, override_config, data_path, resume_path, output):
    """レイヤーを教師なし事前学習"""
    cfg = load_config_file(config, list(override_config))
    data = torch.load(data_path, map_location="cpu", weights_only=True)
    if not isinstance(data, torch.Tensor):
        raise click.ClickException(f"{data_path} does not contain a tensor")

    if resume_path:
        layer = load_layer(resume_path)
        logger.info(f"🔁 Resuming from {resume_path}")
    else:
        layer = LayerBuilder.from_config(cfg.layer).build()

    trainer = LayerTrainer(layer, cfg.training)
    history = trainer.fit(data)
    save_layer(layer, output)
    if history["cross_entropy"]:
        click.echo(f"final cross_entropy: {history['cross_entropy'][-1]:.6f}")


def register_layer_commands(cli):
    cli.add_command(init_layer)
    cli.add_command(inspect_layer)
    cli.add_command(pretrain_layer)
