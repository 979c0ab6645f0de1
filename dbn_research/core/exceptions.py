# ファイルパス: dbn_research/core/exceptions.py
# 日本語タイトル: レイヤーコア例外定義
# 機能説明:
#   事前学習レイヤーの初期化・評価・構築・永続化で送出される例外の階層。
#   呼び出し側は LayerError で一括捕捉できる。


class LayerError(Exception):
    """dbn_research が送出する全例外の基底クラス。"""


class InvalidDimensionError(LayerError, ValueError):
    """可視/隠れユニット数が1未満、またはテンソル形状が次元と一致しない。"""


class PreconditionError(LayerError, RuntimeError):
    """操作に必要な状態 (入力バッチなど) が未設定。"""


class ConstructionError(LayerError):
    """具象レイヤー型のインスタンス生成に失敗した。"""


class PersistenceError(LayerError):
    """バイトストリームからの復元、またはストリームへの書き出しに失敗した。"""
