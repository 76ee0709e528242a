"""
ConfigResolver — 複数の設定ソースを不変の実効設定にマージする

優先順位（後勝ち）は全項目で固定:
  defaults → per-test 宣言設定 → 外部オーバーライド（環境変数等）

defaults レイヤーはさらに以下の順で構成される:
  組み込みデフォルト → 保存済みキー/値設定 → ドキュメントの defaults
  → currentSchemes に列挙されたスキーム（列挙順）

主な機能:
  - 項目ごとの独立した優先順位解決（部分マージの曖昧さなし）
  - base_url + path による URL 合成（base_url 未設定時は url を使用）
  - custom_capabilities のキー単位マージ（同一キーは後勝ち、全置換はしない）
  - 型変換失敗の扱い: per-test / external では ConfigError、
    defaults では「未設定」として次のルールにフォールスルー
"""

from __future__ import annotations

import logging
from collections.abc import Mapping as MappingABC
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from ..errors import ConfigError
from .schema import Browser, ConfigDocument, DeclaredConfig, EffectiveConfig
from .sources import (
    BUILTIN_DEFAULTS,
    ExternalOverrides,
    load_config_document,
    load_overrides_from_env,
)

logger = logging.getLogger(__name__)

_SOURCE_DEFAULTS = "defaults"
_SOURCE_PER_TEST = "per-test"
_SOURCE_EXTERNAL = "external"

_TRUE_VALUES = frozenset({"true", "yes", "on", "1"})
_FALSE_VALUES = frozenset({"false", "no", "off", "0"})


# ---------------------------------------------------------------------------
# 型変換（設定キー → 変換関数の明示的な対応表）
# ---------------------------------------------------------------------------

def _to_str(value: Any) -> str:
    if isinstance(value, (dict, list, tuple, set)):
        raise ValueError(f"文字列ではありません: {value!r}")
    return str(value).strip()


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise ValueError(f"真偽値として解釈できません: {value!r}")


def _to_non_negative_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"整数として解釈できません: {value!r}")
    if isinstance(value, int):
        result = value
    elif isinstance(value, float) and value.is_integer():
        result = int(value)
    elif isinstance(value, str):
        result = int(value.strip())
    else:
        raise ValueError(f"整数として解釈できません: {value!r}")
    if result < 0:
        raise ValueError(f"0 以上の整数である必要があります: {value!r}")
    return result


def _to_browser(value: Any) -> Browser:
    if isinstance(value, Browser):
        return value
    if not isinstance(value, str):
        raise ValueError(f"ブラウザ名として解釈できません: {value!r}")
    return Browser.parse(value)


def _to_capabilities(value: Any) -> dict[str, Any]:
    if not isinstance(value, MappingABC):
        raise ValueError(
            f"customCapabilities はキー/値のマッピングである必要があります: {value!r}"
        )
    capabilities: dict[str, Any] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ValueError(f"customCapabilities のキーは文字列である必要があります: {key!r}")
        capabilities[key] = item
    return capabilities


_FIELD_COERCERS: dict[str, Callable[[Any], Any]] = {
    "url": _to_str,
    "base_url": _to_str,
    "path": _to_str,
    "hub": _to_str,
    "browser": _to_browser,
    "timeout": _to_non_negative_int,
    "retries": _to_non_negative_int,
    "screenshot_on_fail": _to_bool,
}

_CAPABILITIES_KEY = "custom_capabilities"

# 受け付けるキー表記 → 正規キー
_KEY_ALIASES: dict[str, str] = {
    "url": "url",
    "baseUrl": "base_url",
    "base_url": "base_url",
    "path": "path",
    "hub": "hub",
    "browser": "browser",
    "timeout": "timeout",
    "retries": "retries",
    "screenshotOnFail": "screenshot_on_fail",
    "screenshot_on_fail": "screenshot_on_fail",
    "screenshotsOnFail": "screenshot_on_fail",
    "customCapabilities": _CAPABILITIES_KEY,
    "custom_capabilities": _CAPABILITIES_KEY,
}


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def compose_url(base_url: str, path: str) -> str:
    """base_url と path を 1 つの "/" で連結する。

    path 先頭の "/" は取り除く。

    >>> compose_url("https://example.com", "/login")
    'https://example.com/login'
    """
    if path.startswith("/"):
        path = path[1:]
    if not base_url.endswith("/"):
        base_url += "/"
    return base_url + path


# ---------------------------------------------------------------------------
# 解決処理
# ---------------------------------------------------------------------------

Layer = Mapping[str, Any]


def _layer_of(value: Union[DeclaredConfig, ExternalOverrides, Layer, None]) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, (DeclaredConfig, ExternalOverrides)):
        return value.as_layer()
    return dict(value)


def resolve_config(
    per_test: Union[DeclaredConfig, Layer, None] = None,
    external: Union[ExternalOverrides, Layer, None] = None,
    defaults: Union[Layer, Sequence[Layer], None] = None,
    *,
    current_schemes: Sequence[str] = (),
) -> EffectiveConfig:
    """設定ソースをマージして EffectiveConfig を生成する。

    Args:
        per_test: テスト単位の宣言設定
        external: 外部オーバーライド
        defaults: defaults レイヤー。複数渡した場合は先頭から順に適用する。
                  組み込みデフォルトは常に最初に適用される
        current_schemes: 適用済みスキーム名（EffectiveConfig に記録する）

    Returns:
        不変の実効設定

    Raises:
        ConfigError: per-test / external の値が型変換できない場合
    """
    if defaults is None:
        default_layers: list[Layer] = []
    elif isinstance(defaults, MappingABC):
        default_layers = [defaults]
    else:
        default_layers = list(defaults)

    layers: list[tuple[str, dict[str, Any]]] = [(_SOURCE_DEFAULTS, dict(BUILTIN_DEFAULTS))]
    layers.extend((_SOURCE_DEFAULTS, dict(layer)) for layer in default_layers)
    layers.append((_SOURCE_PER_TEST, _layer_of(per_test)))
    layers.append((_SOURCE_EXTERNAL, _layer_of(external)))

    values: dict[str, Any] = {}
    capabilities: dict[str, Any] = {}

    for source, layer in layers:
        for raw_key, raw_value in layer.items():
            key = _KEY_ALIASES.get(raw_key)
            if key is None:
                logger.debug("未知の設定キーを無視します: %s (%s)", raw_key, source)
                continue
            if _is_absent(raw_value):
                continue

            coerce = _to_capabilities if key == _CAPABILITIES_KEY else _FIELD_COERCERS[key]
            try:
                coerced = coerce(raw_value)
            except (TypeError, ValueError) as exc:
                if source == _SOURCE_DEFAULTS:
                    logger.warning(
                        "defaults の設定値が不正なため無視します: %s=%r (%s)",
                        raw_key, raw_value, exc,
                    )
                    continue
                raise ConfigError(
                    f"設定値が不正です: {raw_key}={raw_value!r} ({source}): {exc}",
                    key=raw_key,
                    value=raw_value,
                    source=source,
                ) from exc

            if key == _CAPABILITIES_KEY:
                capabilities.update(coerced)
            else:
                values[key] = coerced

    base_url = values.get("base_url", "")
    path = values.get("path", "")
    url = compose_url(base_url, path) if base_url else values.get("url", "")

    config = EffectiveConfig(
        timeout=values["timeout"],
        retries=values["retries"],
        screenshot_on_fail=values["screenshot_on_fail"],
        url=url,
        base_url=base_url,
        path=path,
        browser=values["browser"],
        hub=values.get("hub", ""),
        custom_capabilities=capabilities,
        current_schemes=tuple(current_schemes),
    )
    logger.debug("実効設定を解決しました: %s", config)
    return config


# ---------------------------------------------------------------------------
# ConfigResolver 本体
# ---------------------------------------------------------------------------

class ConfigResolver:
    """テストセッションごとに実効設定を解決するリゾルバ。

    defaults レイヤー（保存済み設定・ドキュメント・スキーム）と外部オーバーライドは
    構築時に一度だけ確定させ、以降は per-test 設定だけを差し替えて resolve() する。
    並行実行されるテスト間で可変の共有状態を持たない。

    使用例::

        resolver = ConfigResolver.from_sources(document_path="conductor.yaml")
        config = resolver.resolve(DeclaredConfig(path="/login"))
    """

    def __init__(
        self,
        document: Optional[ConfigDocument] = None,
        external: Optional[ExternalOverrides] = None,
        stored_defaults: Optional[Layer] = None,
    ) -> None:
        self._document = document or ConfigDocument()
        self._external = external or ExternalOverrides()
        self._stored_defaults = dict(stored_defaults or {})

        if self._external.current_schemes is not None:
            self._schemes = tuple(self._external.current_schemes)
        else:
            self._schemes = tuple(self._document.current_schemes)

        known = self._document.schemes
        for name in self._schemes:
            if name not in known:
                logger.warning("未定義のスキームを無視します: %s", name)

    @classmethod
    def from_sources(
        cls,
        document_path: Union[str, Path, None] = None,
        stored_defaults: Optional[Layer] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ConfigResolver":
        """ファイル・環境変数から ConfigResolver を構築する。

        Raises:
            ConfigError: 設定ドキュメントが不正な場合
        """
        return cls(
            document=load_config_document(document_path),
            external=load_overrides_from_env(environ),
            stored_defaults=stored_defaults,
        )

    @property
    def current_schemes(self) -> tuple[str, ...]:
        """適用されるスキーム名（適用順）。"""
        return self._schemes

    def default_layers(self) -> list[dict[str, Any]]:
        """defaults レイヤーを適用順に返す。"""
        layers: list[dict[str, Any]] = [self._stored_defaults, dict(self._document.defaults)]
        layers.extend(self._document.scheme_layers(list(self._schemes)))
        return layers

    def resolve(self, per_test: Union[DeclaredConfig, Layer, None] = None) -> EffectiveConfig:
        """per-test 設定を加えて実効設定を解決する。

        Raises:
            ConfigError: per-test / external の値が不正な場合
        """
        return resolve_config(
            per_test,
            self._external,
            self.default_layers(),
            current_schemes=self._schemes,
        )
