"""
Driver — ブラウザセッションの抽象インターフェース

待機プリミティブ（PollingWait / WindowMatcher / FrameNavigator）が依存する
ドライバ操作を Protocol として定義する。実装は PlaywrightDriver のほか、
テスト用のフェイクドライバでも差し替えられる。

主な構成:
  - Driver Protocol: 要素検索、URL / タイトル取得、ウィンドウ列挙・切り替え、
    フレーム切り替え、ナビゲーション、スクリプト実行、スクリーンショット
  - DriverError: ドライバ操作で発生する一時的な障害の基底クラス
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from ..core.locator import Locator


# ---------------------------------------------------------------------------
# ドライバ操作のエラー
# ---------------------------------------------------------------------------

class DriverError(Exception):
    """ドライバ操作中に発生したエラーの基底クラス。"""


class NoSuchWindowError(DriverError):
    """列挙後に消えたウィンドウハンドルへ切り替えようとした。"""


class NoSuchFrameError(DriverError):
    """指定されたフレームが存在しない。"""


FrameTarget = Union[str, int, Any]
"""フレームの指定方法: id / name 文字列、インデックス、または要素参照。"""


# ---------------------------------------------------------------------------
# Driver Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class Driver(Protocol):
    """待機プリミティブが利用するドライバ操作。"""

    def find_elements(self, locator: Locator) -> list[Any]:
        """現在のコンテキストでロケータに一致する要素を全て返す（0 件可）。"""
        ...

    def scroll_into_view(self, element: Any) -> None:
        """要素を画面内にスクロールする。"""
        ...

    def is_displayed(self, element: Any) -> bool:
        ...

    def is_enabled(self, element: Any) -> bool:
        ...

    @property
    def current_url(self) -> str:
        ...

    @property
    def title(self) -> str:
        ...

    @property
    def window_handles(self) -> list[str]:
        """現時点のウィンドウハンドルを列挙順で返す（キャッシュしない）。"""
        ...

    @property
    def current_window_handle(self) -> str:
        ...

    def switch_to_window(self, handle: str) -> None:
        """ウィンドウを切り替える。

        Raises:
            NoSuchWindowError: ハンドルが既に存在しない場合
        """
        ...

    def close(self) -> None:
        """現在のウィンドウを閉じる。"""
        ...

    def switch_to_frame(self, target: FrameTarget) -> None:
        """フレームに切り替える。

        Raises:
            NoSuchFrameError: フレームが存在しない場合
        """
        ...

    def switch_to_default_content(self) -> None:
        """トップレベルのドキュメントに戻る。"""
        ...

    def navigate(self, url: str) -> None:
        ...

    def go_back(self) -> None:
        ...

    def run_script(self, script: str, *args: Any) -> Any:
        ...

    def screenshot(self, path: Union[str, Path]) -> Path:
        ...
