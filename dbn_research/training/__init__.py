from .layer_trainer import LayerTrainer

__all__ = ["LayerTrainer"]
