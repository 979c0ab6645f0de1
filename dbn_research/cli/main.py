# ファイルパス: dbn_research/cli/main.py
# 日本語タイトル: dbn-cli エントリーポイント
# 機能説明: レイヤーの生成 (init)・検査 (inspect)・事前学習 (pretrain) をまとめる click グループ。

import logging
import sys

import click

from .layer_commands import register_layer_commands

logger = logging.getLogger("dbn_cli")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(debug: bool = False) -> None:
    # --debug 時はマージ・初期化の DEBUG ログも出す
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stdout
    )


@click.group()
@click.option('--debug', is_flag=True, help='マージや初期化の詳細ログを出力します。')
def cli(debug):
    """DBN 層単位事前学習 CLIツール"""
    setup_logging(debug)
    logger.debug("Debug logging enabled.")


register_layer_commands(cli)


def main():
    try:
        cli()
    except SystemExit:
        raise
    except Exception as e:
        # LayerError 系 (次元不正・永続化失敗など) もここで終了コード 1 にする
        if '--debug' in sys.argv:
            logger.exception(f"❌ dbn-cli failed: {e}")
        else:
            logger.error(f"❌ dbn-cli failed: {e} (use --debug for the traceback)")
        sys.exit(1)


if __name__ == '__main__':
    main()
