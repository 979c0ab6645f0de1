# dbn_research/learning_rules/__init__.py
# Title: Learning Rules Package Init

from .adagrad import AdaGrad

__all__ = [
    "AdaGrad",
]
