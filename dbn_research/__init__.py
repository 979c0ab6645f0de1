"""
dbn_research: deep belief network の層単位事前学習コア。

RBM / Denoising AutoEncoder などの教師なしレイヤーに共通する
パラメータ初期化、再構成誤差、並列マージ、AdaGrad 管理を提供する。
"""

__version__ = "0.1.0"
