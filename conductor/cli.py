"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

conductor コマンドとして以下のサブコマンドを提供する:
  - config show: 実効設定を YAML で表示
  - config validate: 設定ドキュメントと環境変数オーバーライドの検証
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional

import typer
from ruamel.yaml import YAML

from .config import ConfigResolver, DeclaredConfig
from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("conductor.yaml")

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="conductor — ブラウザテストの待機エンジンと設定ツール",
    no_args_is_help=True,
)

config_app = typer.Typer(
    help="設定の表示・検証サブコマンド",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING", "--log-level", help="ログレベル (DEBUG / INFO / WARNING / ERROR)",
    ),
) -> None:
    """ログ出力を設定する。"""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(name)s - %(message)s",
    )


def _build_resolver(config_file: Path) -> ConfigResolver:
    return ConfigResolver.from_sources(document_path=config_file)


# ---------------------------------------------------------------------------
# config show コマンド
# ---------------------------------------------------------------------------

@config_app.command("show")
def show(
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_FILE, "--config", "-c", help="設定ドキュメント（YAML）",
    ),
    path: Optional[str] = typer.Option(
        None, "--path", help="per-test 設定として与える path",
    ),
    browser: Optional[str] = typer.Option(
        None, "--browser", help="per-test 設定として与える browser",
    ),
) -> None:
    """設定ドキュメント・環境変数をマージした実効設定を表示する。"""
    try:
        resolver = _build_resolver(config_file)
        config = resolver.resolve(DeclaredConfig(path=path, browser=browser))
    except ConfigError as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    yaml = YAML()
    yaml.default_flow_style = False
    buffer = io.StringIO()
    yaml.dump(config.to_dict(), buffer)
    typer.echo(buffer.getvalue().rstrip("\n"))


# ---------------------------------------------------------------------------
# config validate コマンド
# ---------------------------------------------------------------------------

@config_app.command("validate")
def validate(
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_FILE, "--config", "-c", help="設定ドキュメント（YAML）",
    ),
) -> None:
    """設定ドキュメントと環境変数オーバーライドを検証する。"""
    try:
        resolver = _build_resolver(config_file)
        resolver.resolve()
    except ConfigError as exc:
        typer.echo(f"✗ {config_file}: {exc}", err=True)
        raise typer.Exit(code=1)

    schemes = ", ".join(resolver.current_schemes) or "-"
    typer.echo(f"✓ {config_file}: 設定 OK (schemes: {schemes})")
