"""
Conductor — テストインスタンス単位のファサード

実効設定・ドライバ・待機プリミティブを 1 つにまとめ、
操作系（クリック・入力等）の実装が依存する待機契約を提供する。

主な機能:
  - 要素待機 / 条件待機 / 操作前提条件の待機
  - ウィンドウ・フレームの切り替え
  - ナビゲーション（絶対 URL / 設定 URL 基準 / 現在 URL 基準）
  - テスト内の変数ストア（store / get）
  - open(): セッションの起動と、失敗時スクリーンショット → 解放の保証

使用例::

    config = ConfigResolver.from_sources("conductor.yaml").resolve(
        declared_config_of(TestLogin)
    )
    with Conductor.open(config, "TestLogin.test_submit") as c:
        c.wait_for_element("#login")
        c.wait_for_window("Dashboard.*")
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, TypeVar

from .config.resolver import compose_url
from .core.artifacts import FailureArtifacts
from .core.frames import FrameNavigator
from .core.locator import LocatorLike
from .core.waits import DEFAULT_INTERVAL, ConditionWait, PollingWait, wait_until_interactable
from .core.windows import WindowMatcher
from .driver.session import BrowserSession

if TYPE_CHECKING:
    from .config.schema import EffectiveConfig
    from .driver.base import Driver, FrameTarget

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Conductor:
    """1 つのテストインスタンスが所有する待機・切り替えプリミティブの集合。

    設定・ドライバ・カウンタはインスタンスごとに独立しており、
    並行実行される他のテストと可変状態を共有しない。
    """

    def __init__(
        self,
        config: EffectiveConfig,
        driver: Driver,
        *,
        interval: float = DEFAULT_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Conductor を初期化する。

        Args:
            config: 実効設定（変更しない）
            driver: このテストが所有するドライバ
            interval: 要素・ウィンドウ・条件待機のポーリング間隔（秒）
            sleep: スリープ関数（テストで差し替え可能）
            clock: 単調増加時計（テストで差し替え可能）
        """
        self._config = config
        self._driver = driver
        self._elements = PollingWait(driver, config.retries, interval, sleep)
        self._conditions = ConditionWait(config.timeout, interval, sleep, clock)
        self._windows = WindowMatcher(driver, config.retries, interval, sleep)
        self._frames = FrameNavigator(driver)
        self._vars: dict[str, str] = {}

    @property
    def config(self) -> EffectiveConfig:
        return self._config

    @property
    def driver(self) -> Driver:
        return self._driver

    # -------------------------------------------------------------------
    # セッション
    # -------------------------------------------------------------------

    @classmethod
    @contextmanager
    def open(
        cls,
        config: EffectiveConfig,
        test_name: str,
        *,
        session: Optional[BrowserSession] = None,
        artifacts: Optional[FailureArtifacts] = None,
        headless: bool = True,
    ) -> Iterator["Conductor"]:
        """セッションを起動し、ブロック終了時に必ず解放する。

        ブロック内で例外が発生した場合、screenshot_on_fail が有効なら
        解放前にスクリーンショットを保存する（保存失敗は元の例外を隠さない）。

        Raises:
            DriverSessionError: セッションの起動に失敗した場合
        """
        session = session or BrowserSession(headless=headless)
        driver = session.launch(config)
        try:
            yield cls(config, driver)
        except Exception:
            if config.screenshot_on_fail:
                (artifacts or FailureArtifacts()).capture_screenshot(driver, test_name)
            raise
        finally:
            session.close()

    # -------------------------------------------------------------------
    # 要素・条件待機
    # -------------------------------------------------------------------

    def wait_for_elements(self, locator: LocatorLike) -> list[Any]:
        return self._elements.wait_for_elements(locator)

    def wait_for_element(self, locator: LocatorLike) -> Any:
        return self._elements.wait_for_element(locator)

    def wait_for_condition(
        self,
        predicate: Callable[[], T],
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        description: Optional[str] = None,
    ) -> T:
        return self._conditions.wait_for_condition(
            predicate, timeout, poll_interval, description,
        )

    def wait_until_interactable(self, locator: LocatorLike) -> Any:
        """要素を待機し、可視かつクリック可能になってから返す。"""
        element = self._elements.wait_for_element(locator)
        return wait_until_interactable(self._driver, element, self._conditions)

    def is_present(self, locator: LocatorLike) -> bool:
        """待機せずに、要素が現在存在するかどうかを返す。"""
        return bool(PollingWait(self._driver, 0).wait_for_elements(locator))

    # -------------------------------------------------------------------
    # ウィンドウ・フレーム
    # -------------------------------------------------------------------

    def switch_to_window(self, pattern: str) -> "Conductor":
        self._windows.switch_to_window(pattern)
        return self

    def wait_for_window(self, pattern: str) -> "Conductor":
        self._windows.wait_for_window(pattern)
        return self

    def close_window(self, pattern: Optional[str] = None) -> "Conductor":
        self._windows.close_window(pattern)
        return self

    def switch_to_frame(self, target: FrameTarget) -> "Conductor":
        self._frames.switch_to_frame(target)
        return self

    def switch_to_default_content(self) -> "Conductor":
        self._frames.switch_to_default_content()
        return self

    # -------------------------------------------------------------------
    # ナビゲーション
    # -------------------------------------------------------------------

    def navigate_to(self, url: str) -> "Conductor":
        """URL に遷移する。

        - "://" を含む: 絶対 URL としてそのまま遷移
        - "/" で始まる: 設定の base_url（未設定なら url）を基準に遷移
        - それ以外: 現在の URL の末尾に連結して遷移
        """
        if "://" in url:
            target = url
        elif url.startswith("/"):
            target = compose_url(self._config.base_url or self._config.url, url)
        else:
            target = self._driver.current_url + url
        logger.info("遷移します: %s", target)
        self._driver.navigate(target)
        return self

    def go_back(self) -> "Conductor":
        self._driver.go_back()
        return self

    # -------------------------------------------------------------------
    # 変数ストア
    # -------------------------------------------------------------------

    def store(self, key: str, value: str) -> "Conductor":
        self._vars[key] = value
        return self

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """保存した値を返す。未設定または空文字の場合は default。"""
        value = self._vars.get(key)
        return value if value else default
