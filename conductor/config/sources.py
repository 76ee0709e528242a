"""
設定ソース — 環境変数オーバーライドと YAML 設定ドキュメントの読み込み

環境変数は実行開始時に一度だけ読み込み、不変の ExternalOverrides として
リゾルバに渡す。テスト実行中に os.environ を参照し直すことはない。

環境変数一覧:
  CONDUCTOR_URL                 : テスト対象 URL
  CONDUCTOR_BASE_URL            : ベース URL
  CONDUCTOR_PATH                : ベース URL に連結するパス
  CONDUCTOR_BROWSER             : ブラウザ種別（chrome / firefox / edge / safari ...）
  CONDUCTOR_HUB                 : リモート接続先
  CONDUCTOR_TIMEOUT             : 条件待機のタイムアウト（秒）
  CONDUCTOR_RETRIES             : 要素・ウィンドウ待機の試行回数
  CONDUCTOR_SCREENSHOTS_ON_FAIL : 失敗時スクリーンショット（true/false）
  CONDUCTOR_CURRENT_SCHEMES     : 適用するスキーム（カンマ区切り）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..errors import ConfigError
from .schema import ConfigDocument

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

ENV_URL = "CONDUCTOR_URL"
ENV_BASE_URL = "CONDUCTOR_BASE_URL"
ENV_PATH = "CONDUCTOR_PATH"
ENV_BROWSER = "CONDUCTOR_BROWSER"
ENV_HUB = "CONDUCTOR_HUB"
ENV_TIMEOUT = "CONDUCTOR_TIMEOUT"
ENV_RETRIES = "CONDUCTOR_RETRIES"
ENV_SCREENSHOTS_ON_FAIL = "CONDUCTOR_SCREENSHOTS_ON_FAIL"
ENV_CURRENT_SCHEMES = "CONDUCTOR_CURRENT_SCHEMES"

# 環境変数名 → 設定キー
_ENV_FIELDS: dict[str, str] = {
    ENV_URL: "url",
    ENV_BASE_URL: "base_url",
    ENV_PATH: "path",
    ENV_BROWSER: "browser",
    ENV_HUB: "hub",
    ENV_TIMEOUT: "timeout",
    ENV_RETRIES: "retries",
    ENV_SCREENSHOTS_ON_FAIL: "screenshot_on_fail",
}

# 組み込みのデフォルト値（最下位レイヤー）
BUILTIN_DEFAULTS: Mapping[str, Any] = MappingProxyType({
    "timeout": 5,
    "retries": 5,
    "screenshot_on_fail": True,
    "browser": "none",
})


# ---------------------------------------------------------------------------
# 外部オーバーライド
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExternalOverrides:
    """外部（環境変数等）から与えられたオーバーライド値。

    Attributes:
        values: 設定キー → 生の文字列値
        current_schemes: 適用スキームの上書き（None の場合はドキュメントに従う）
    """

    values: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    current_schemes: Optional[tuple[str, ...]] = None

    def __post_init__(self) -> None:
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def as_layer(self) -> dict[str, str]:
        """リゾルバに渡すレイヤー辞書を返す。"""
        return dict(self.values)


def load_overrides_from_env(
    environ: Optional[Mapping[str, str]] = None,
) -> ExternalOverrides:
    """環境変数から ExternalOverrides を生成する。

    空文字の環境変数は未設定として扱う。値の型変換はここでは行わず、
    リゾルバで行う（不正値は ConfigError になる）。

    Args:
        environ: 読み込み元。None の場合は os.environ のスナップショット

    Returns:
        読み込んだオーバーライド
    """
    env = dict(os.environ if environ is None else environ)

    values: dict[str, str] = {}
    for env_key, config_key in _ENV_FIELDS.items():
        raw = env.get(env_key, "")
        if raw.strip():
            values[config_key] = raw.strip()

    schemes: Optional[tuple[str, ...]] = None
    raw_schemes = env.get(ENV_CURRENT_SCHEMES, "")
    if raw_schemes.strip():
        schemes = tuple(s.strip() for s in raw_schemes.split(",") if s.strip())

    if values or schemes:
        logger.info(
            "外部オーバーライドを読み込みました: keys=%s, schemes=%s",
            sorted(values), schemes,
        )
    return ExternalOverrides(values=values, current_schemes=schemes)


# ---------------------------------------------------------------------------
# YAML 設定ドキュメント
# ---------------------------------------------------------------------------

def load_config_document(path: Union[str, Path, None]) -> ConfigDocument:
    """YAML 設定ドキュメントを読み込む。

    ファイルが存在しない場合は空のドキュメントを返す。

    Args:
        path: 設定ファイルのパス（None の場合は空ドキュメント）

    Returns:
        検証済みの ConfigDocument

    Raises:
        ConfigError: YAML 構文エラー、または構造が不正な場合
    """
    if path is None:
        return ConfigDocument()

    path = Path(path)
    if not path.exists():
        logger.debug("設定ファイルがありません。空として扱います: %s", path)
        return ConfigDocument()

    yaml = YAML(typ="safe")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.load(f)
    except YAMLError as e:
        line_info = ""
        if getattr(e, "problem_mark", None) is not None:
            mark = e.problem_mark
            line_info = f" (行 {mark.line + 1}, 列 {mark.column + 1})"
        raise ConfigError(
            f"設定ファイルの YAML 構文エラー{line_info}: {path}",
            source="document",
        ) from e

    return parse_config_document(data, source=str(path))


def parse_config_document(data: Any, source: str = "document") -> ConfigDocument:
    """読み込み済みのデータを ConfigDocument に変換する。

    Raises:
        ConfigError: 構造が不正な場合
    """
    if data is None:
        return ConfigDocument()
    if not isinstance(data, dict):
        raise ConfigError(
            f"設定ドキュメントのトップレベルはマッピングである必要があります: {source}",
            source="document",
        )
    try:
        return ConfigDocument.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigError(
            f"設定ドキュメントの構造が不正です ({source}): {e}",
            source="document",
        ) from e
