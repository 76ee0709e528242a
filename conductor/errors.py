"""
エラー定義 — conductor の例外階層

主な構成:
  - ConductorError: 全例外の基底クラス
  - ConfigError: 設定値の型変換失敗・設定ドキュメントの不正（セットアップ時に致命的）
  - WaitFailure: 待機系プリミティブのアサーション失敗（AssertionError 派生）
  - DriverSessionError: ブラウザセッション取得失敗（実行全体を停止させる）

WaitFailure は AssertionError を継承するため、pytest 上では
エラーではなくテスト失敗（failed）として報告される。
"""

from __future__ import annotations

from typing import Any, Optional


class ConductorError(Exception):
    """conductor が送出する例外の基底クラス。"""


# ---------------------------------------------------------------------------
# 設定エラー
# ---------------------------------------------------------------------------

class ConfigError(ConductorError):
    """設定値の解釈に失敗した場合のエラー。

    per-test 設定または外部オーバーライドの値が不正な場合に送出される。
    defaults レイヤーの不正値はこのエラーにならず「未設定」として扱われる。

    Attributes:
        key: 問題のあった設定キー（特定できない場合は None）
        value: 問題のあった値
        source: 値の出所（"per-test", "external", "document" 等）
    """

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        value: Any = None,
        source: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.key = key
        self.value = value
        self.source = source


# ---------------------------------------------------------------------------
# 待機失敗（アサーション失敗）
# ---------------------------------------------------------------------------

class WaitFailure(ConductorError, AssertionError):
    """待機系プリミティブが規定の予算内に成功しなかったことを表す。"""


class ElementNotFound(WaitFailure):
    """リトライ予算を使い切っても要素が見つからなかった。"""

    def __init__(self, locator: Any, retries: int) -> None:
        super().__init__(
            f"要素 {locator} が {retries} 回の試行で見つかりませんでした"
        )
        self.locator = locator
        self.retries = retries


class ConditionTimeout(WaitFailure):
    """タイムアウトまでに条件が成立しなかった。"""

    def __init__(self, description: str, timeout: float) -> None:
        super().__init__(
            f"条件 '{description}' が {timeout:g} 秒以内に成立しませんでした"
        )
        self.description = description
        self.timeout = timeout


class WindowNotFound(WaitFailure):
    """パターンに一致するウィンドウが存在しなかった。"""

    def __init__(self, pattern: str, attempts: Optional[int] = None) -> None:
        if attempts is None:
            message = f"タイトル / URL が '{pattern}' に一致するウィンドウがありません"
        else:
            message = (
                f"タイトル / URL が '{pattern}' に一致するウィンドウが "
                f"{attempts} 回の試行で現れませんでした"
            )
        super().__init__(message)
        self.pattern = pattern
        self.attempts = attempts


class FrameSwitchFailed(WaitFailure):
    """フレームへの切り替えに失敗した。リトライは行わない。"""

    def __init__(self, identifier: Any) -> None:
        super().__init__(f"フレーム [{identifier}] に切り替えできませんでした")
        self.identifier = identifier


# ---------------------------------------------------------------------------
# セッションエラー
# ---------------------------------------------------------------------------

class DriverSessionError(ConductorError):
    """ブラウザセッションの取得に失敗した場合のエラー。

    ブラウザバイナリの欠如や hub への接続失敗など。
    以降のステップは意味を持たないため、実行を停止させる。
    """
