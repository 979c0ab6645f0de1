from .persistence import (
    FORMAT_VERSION,
    LayerSnapshot,
    save_layer,
    read_snapshot,
    load_into,
    load_layer,
)

__all__ = [
    "FORMAT_VERSION",
    "LayerSnapshot",
    "save_layer",
    "read_snapshot",
    "load_into",
    "load_layer",
]
