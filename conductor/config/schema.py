"""
設定スキーマ — 実効設定・per-test 宣言設定・設定ドキュメントの定義

主な構成:
  - Browser: ブラウザ種別
  - DeclaredConfig: テストクラス単位で宣言する設定（全項目任意）
  - declare_config / declared_config_of: テストクラスへの設定付与・取得
  - EffectiveConfig: 全ソースをマージした不変の実効設定
  - ConfigDocument: YAML 設定ドキュメント（defaults / currentSchemes / スキーム）
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# ブラウザ種別
# ---------------------------------------------------------------------------

class Browser(enum.Enum):
    """テスト対象のブラウザ種別。

    値は Playwright 側の起動方法の識別に使用する。
    """

    NONE = "none"
    CHROME = "chrome"
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    EDGE = "edge"
    SAFARI = "safari"

    @classmethod
    def parse(cls, value: str) -> "Browser":
        """名前または値（大文字小文字を区別しない）から Browser を得る。

        Raises:
            ValueError: 未知のブラウザ名の場合
        """
        normalized = value.strip().lower()
        for member in cls:
            if normalized in (member.value, member.name.lower()):
                return member
        raise ValueError(f"未知のブラウザです: {value}")


# ---------------------------------------------------------------------------
# per-test 宣言設定
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeclaredConfig:
    """テスト単位で宣言される設定。

    None の項目は「未宣言」を意味し、下位レイヤー（defaults）の値が使われる。
    値は文字列でもよく、解決時に型変換される。

    Attributes:
        url: テスト対象 URL（base_url 未設定時のみ使用）
        base_url: ベース URL
        path: base_url に連結するパス
        browser: ブラウザ種別
        hub: リモート接続先
        timeout: 条件待機のタイムアウト（秒）
        retries: 要素・ウィンドウ待機の試行回数
        screenshot_on_fail: 失敗時にスクリーンショットを保存するか
        custom_capabilities: ブラウザコンテキストへ渡す追加オプション
    """

    url: Optional[str] = None
    base_url: Optional[str] = None
    path: Optional[str] = None
    browser: Optional[Any] = None
    hub: Optional[str] = None
    timeout: Optional[Any] = None
    retries: Optional[Any] = None
    screenshot_on_fail: Optional[Any] = None
    custom_capabilities: Optional[Mapping[str, Any]] = None

    def as_layer(self) -> dict[str, Any]:
        """宣言済み（None 以外）の項目だけを辞書で返す。"""
        values = {
            "url": self.url,
            "base_url": self.base_url,
            "path": self.path,
            "browser": self.browser,
            "hub": self.hub,
            "timeout": self.timeout,
            "retries": self.retries,
            "screenshot_on_fail": self.screenshot_on_fail,
            "custom_capabilities": self.custom_capabilities,
        }
        return {key: value for key, value in values.items() if value is not None}


_DECLARED_ATTR = "__conductor_config__"

T = TypeVar("T")


def declare_config(**kwargs: Any) -> Callable[[type[T]], type[T]]:
    """テストクラスに DeclaredConfig を付与するクラスデコレータ。

    使用例::

        @declare_config(path="/login", browser="firefox")
        class TestLogin:
            ...
    """
    declared = DeclaredConfig(**kwargs)

    def decorator(cls: type[T]) -> type[T]:
        setattr(cls, _DECLARED_ATTR, declared)
        return cls

    return decorator


def declared_config_of(obj: Any) -> Optional[DeclaredConfig]:
    """クラスまたはインスタンスに付与された DeclaredConfig を返す。"""
    target = obj if isinstance(obj, type) else type(obj)
    return getattr(target, _DECLARED_ATTR, None)


# ---------------------------------------------------------------------------
# 実効設定
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EffectiveConfig:
    """全ソースをマージした実効設定。

    ConfigResolver が一度だけ生成し、以降は変更されない。
    custom_capabilities は読み取り専用マッピングとして保持する。
    """

    timeout: int = 5
    retries: int = 5
    screenshot_on_fail: bool = True
    url: str = ""
    base_url: str = ""
    path: str = ""
    browser: Browser = Browser.NONE
    hub: str = ""
    custom_capabilities: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )
    current_schemes: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.timeout < 0 or self.retries < 0:
            raise ValueError("timeout / retries は 0 以上である必要があります")
        if not isinstance(self.custom_capabilities, MappingProxyType):
            object.__setattr__(
                self,
                "custom_capabilities",
                MappingProxyType(dict(self.custom_capabilities)),
            )

    @property
    def is_remote(self) -> bool:
        """hub が設定されているかどうか。"""
        return bool(self.hub)

    def to_dict(self) -> dict[str, Any]:
        """表示・シリアライズ用のプレーンな辞書に変換する。"""
        return {
            "url": self.url,
            "baseUrl": self.base_url,
            "path": self.path,
            "browser": self.browser.value,
            "hub": self.hub,
            "timeout": self.timeout,
            "retries": self.retries,
            "screenshotOnFail": self.screenshot_on_fail,
            "customCapabilities": dict(self.custom_capabilities),
            "currentSchemes": list(self.current_schemes),
        }


# ---------------------------------------------------------------------------
# 設定ドキュメント
# ---------------------------------------------------------------------------

class ConfigDocument(BaseModel):
    """YAML 設定ドキュメントの構造。

    defaults と currentSchemes 以外のトップレベルキーはスキーム定義として扱う。
    各ブロック内の値の型はここでは検証しない（defaults レイヤーの不正値は
    解決時に「未設定」として扱うため）。
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    defaults: dict[Any, Any] = Field(default_factory=dict)
    current_schemes: list[str] = Field(default_factory=list, alias="currentSchemes")

    @field_validator("defaults", mode="before")
    @classmethod
    def _none_defaults(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("current_schemes", mode="before")
    @classmethod
    def _none_schemes(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _check_schemes(self) -> "ConfigDocument":
        for name, block in (self.model_extra or {}).items():
            if block is not None and not isinstance(block, dict):
                raise ValueError(f"スキーム '{name}' はマッピングである必要があります")
        return self

    @property
    def schemes(self) -> dict[str, dict[str, Any]]:
        """スキーム名 → 設定ブロックの辞書。"""
        return {
            name: dict(block or {})
            for name, block in (self.model_extra or {}).items()
        }

    def scheme_layers(self, names: Optional[list[str]] = None) -> list[dict[str, Any]]:
        """適用順（names の順）にスキームブロックを返す。

        未定義のスキーム名は無視する。

        Args:
            names: 適用するスキーム名。None の場合は currentSchemes を使う
        """
        schemes = self.schemes
        ordered = self.current_schemes if names is None else names
        return [schemes[name] for name in ordered if name in schemes]
