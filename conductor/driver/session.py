"""
Session — ブラウザセッション管理

Playwright ブラウザの起動・終了・状態管理を担当する。
1 つのテストインスタンスがセッションを排他的に所有し、
全ての終了経路でちょうど 1 回だけ解放する。

主な機能:
  - 実効設定に応じたブラウザの起動（ローカル / hub 接続）
  - custom_capabilities を BrowserContext のオプションとして適用
  - 起動失敗を DriverSessionError に変換（アサーション失敗とは区別）
  - リソースの安全なクリーンアップ（close は冪等）
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Any, Optional

from ..config.schema import Browser
from ..errors import DriverSessionError
from .playwright_driver import PlaywrightDriver

if TYPE_CHECKING:
    from playwright.sync_api import Browser as PlaywrightBrowser
    from playwright.sync_api import BrowserContext, Playwright

    from ..config.schema import EffectiveConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# セッション状態
# ---------------------------------------------------------------------------

class SessionState(enum.Enum):
    """ブラウザセッションの状態。"""

    IDLE = "idle"
    LAUNCHING = "launching"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


# Browser → (Playwright のブラウザ種別, チャンネル)
_BROWSER_TYPES: dict[Browser, tuple[str, Optional[str]]] = {
    Browser.CHROMIUM: ("chromium", None),
    Browser.CHROME: ("chromium", "chrome"),
    Browser.EDGE: ("chromium", "msedge"),
    Browser.FIREFOX: ("firefox", None),
    Browser.SAFARI: ("webkit", None),
}


# ---------------------------------------------------------------------------
# BrowserSession 本体
# ---------------------------------------------------------------------------

class BrowserSession:
    """Playwright ブラウザセッションの管理クラス。"""

    def __init__(self, headless: bool = True) -> None:
        self._headless = headless
        self._state: SessionState = SessionState.IDLE
        self._pw_instance: Optional[Playwright] = None
        self._browser: Optional[PlaywrightBrowser] = None
        self._context: Optional[BrowserContext] = None
        self._driver: Optional[PlaywrightDriver] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == SessionState.ACTIVE

    @property
    def driver(self) -> PlaywrightDriver:
        """現在のドライバを返す。

        Raises:
            RuntimeError: セッションがアクティブでない場合
        """
        if not self.is_active or self._driver is None:
            raise RuntimeError(
                "アクティブなセッションがありません。先に launch() を呼んでください。"
            )
        return self._driver

    def launch(self, config: EffectiveConfig) -> PlaywrightDriver:
        """ブラウザを起動し、ドライバを返す。

        config.url が設定されていれば最初のウィンドウでその URL を開く。

        Args:
            config: 実効設定

        Returns:
            起動したセッションのドライバ

        Raises:
            RuntimeError: 既にアクティブなセッションがある場合
            DriverSessionError: ブラウザの起動・接続に失敗した場合
        """
        if self._state == SessionState.ACTIVE:
            raise RuntimeError(
                "既にアクティブなセッションがあります。先に close() を呼んでください。"
            )
        if config.browser not in _BROWSER_TYPES:
            raise DriverSessionError(f"ブラウザが指定されていません: {config.browser.value}")

        type_name, channel = _BROWSER_TYPES[config.browser]
        self._state = SessionState.LAUNCHING
        logger.info(
            "ブラウザを起動しています... (browser=%s, hub=%s, headless=%s)",
            config.browser.value, config.hub or "-", self._headless,
        )

        try:
            from playwright.sync_api import sync_playwright

            self._pw_instance = sync_playwright().start()
            browser_type = getattr(self._pw_instance, type_name)

            if config.is_remote:
                self._browser = browser_type.connect(config.hub)
            else:
                launch_options: dict[str, Any] = {"headless": self._headless}
                if channel is not None:
                    launch_options["channel"] = channel
                self._browser = browser_type.launch(**launch_options)

            self._context = self._browser.new_context(**dict(config.custom_capabilities))
            self._driver = PlaywrightDriver(self._context)
            if config.url:
                self._driver.navigate(config.url)
        except Exception as exc:
            logger.exception("ブラウザの起動に失敗しました")
            self._release()
            self._state = SessionState.IDLE
            raise DriverSessionError(
                f"ブラウザセッションを取得できませんでした ({config.browser.value}): {exc}"
            ) from exc

        self._state = SessionState.ACTIVE
        logger.info("ブラウザを起動しました")
        return self._driver

    def close(self) -> None:
        """ブラウザを終了し、リソースをクリーンアップする。2 回目以降は何もしない。"""
        if self._state in (SessionState.IDLE, SessionState.CLOSED, SessionState.CLOSING):
            return

        self._state = SessionState.CLOSING
        logger.info("ブラウザを終了しています...")
        try:
            self._release()
        finally:
            self._state = SessionState.CLOSED
            logger.info("ブラウザを終了しました")

    def _release(self) -> None:
        try:
            if self._browser is not None:
                self._browser.close()
        except Exception:
            logger.exception("ブラウザの終了中にエラーが発生しました")
        try:
            if self._pw_instance is not None:
                self._pw_instance.stop()
        except Exception:
            logger.exception("Playwright の停止中にエラーが発生しました")
        finally:
            self._browser = None
            self._context = None
            self._driver = None
            self._pw_instance = None
