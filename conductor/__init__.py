"""
conductor — ブラウザテストのための待機・リトライエンジンと階層化設定

描画遅延・複数ウィンドウ / フレーム・一時的な障害を許容しつつ、
テストに有限で決定的な成否を返す。

主な構成:
  - config: 設定ソースのマージ（ConfigResolver, EffectiveConfig）
  - core: 要素待機・条件待機・ウィンドウ / フレーム切り替え
  - driver: Driver Protocol と Playwright 実装、ブラウザセッション管理
  - conductor: テストインスタンス単位のファサード
  - cli: 実効設定の表示・検証コマンド
"""

from __future__ import annotations

from .conductor import Conductor
from .config import (
    Browser,
    ConfigResolver,
    DeclaredConfig,
    EffectiveConfig,
    declare_config,
    declared_config_of,
)
from .core import Locator
from .errors import (
    ConditionTimeout,
    ConductorError,
    ConfigError,
    DriverSessionError,
    ElementNotFound,
    FrameSwitchFailed,
    WaitFailure,
    WindowNotFound,
)

__version__ = "0.1.0"

__all__ = [
    "Browser",
    "ConditionTimeout",
    "Conductor",
    "ConductorError",
    "ConfigError",
    "ConfigResolver",
    "DeclaredConfig",
    "DriverSessionError",
    "EffectiveConfig",
    "ElementNotFound",
    "FrameSwitchFailed",
    "Locator",
    "WaitFailure",
    "WindowNotFound",
    "declare_config",
    "declared_config_of",
]
