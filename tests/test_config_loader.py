import pytest

from dbn_research.core.builder import LayerBuilder
from dbn_research.utils.config_loader import load_config, load_config_file


def test_load_default_config():
    cfg = load_config("base_config")

    assert cfg.layer.type == "autoencoder"
    assert cfg.layer.num_visible == 784
    assert cfg.layer.distribution.std == 0.01
    assert cfg.training.num_shards == 1


def test_overrides_are_applied():
    cfg = load_config("base_config.yaml", overrides=["layer.num_hidden=16", "training.epochs=2"])
    assert cfg.layer.num_hidden == 16
    assert cfg.training.epochs == 2


def test_schema_fills_missing_values(tmp_path):
    (tmp_path / "small.yaml").write_text("layer:\n  num_visible: 6\n  num_hidden: 3\n")

    cfg = load_config("small", config_path=str(tmp_path))

    assert cfg.layer.l2 == 0.01
    assert cfg.training.batch_size == 32
    layer = LayerBuilder.from_config(cfg.layer).build()
    assert layer.shape == (6, 3)


def test_invalid_type_raises(tmp_path):
    (tmp_path / "broken.yaml").write_text("layer:\n  num_visible: many\n  num_hidden: 3\n")
    with pytest.raises(RuntimeError):
        load_config("broken", config_path=str(tmp_path))


def test_missing_config_raises(tmp_path):
    with pytest.raises(RuntimeError, match="Failed to load config"):
        load_config("does_not_exist", config_path=str(tmp_path))


def test_load_config_file_from_path(tmp_path):
    path = tmp_path / "layer.yml"
    path.write_text("layer:\n  num_visible: 5\n  num_hidden: 2\n")

    cfg = load_config_file(str(path), overrides=["training.num_shards=2"])

    assert cfg.layer.num_visible == 5
    assert cfg.training.num_shards == 2
