"""
PlaywrightDriver — Playwright（同期 API）による Driver 実装

Playwright にはウィンドウハンドルやフレーム切り替えの概念がないため、
このアダプタで以下を補う。

主な機能:
  - ウィンドウハンドル: BrowserContext 内の Page に作成順で "page-N" を割り当てる。
    列挙は呼び出しのたびに context.pages を読み直す
  - フレームコンテキスト: 現在のフレーム（None はトップレベル）を保持し、
    要素検索・スクリプト実行の対象を切り替える
  - Locator → Playwright セレクタ文字列への変換
  - Playwright の Error を DriverError 系に変換
"""

from __future__ import annotations

import itertools
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from playwright.sync_api import Error as PlaywrightError

from .base import DriverError, FrameTarget, NoSuchFrameError, NoSuchWindowError

if TYPE_CHECKING:
    from playwright.sync_api import BrowserContext, Frame, Page

    from ..core.locator import Locator

logger = logging.getLogger(__name__)


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def to_selector(locator: Locator) -> str:
    """Locator を Playwright のセレクタ文字列に変換する。

    test_id は get_by_test_id() を使うためここでは扱わない。
    """
    if locator.strategy == "css":
        return locator.value
    if locator.strategy == "xpath":
        return f"xpath={locator.value}"
    if locator.strategy == "id":
        return f"[id={_quote(locator.value)}]"
    if locator.strategy == "name":
        return f"[name={_quote(locator.value)}]"
    if locator.strategy == "text":
        return f"text={locator.value}"
    raise ValueError(f"セレクタ文字列に変換できないセレクタ種別です: {locator.strategy}")


class PlaywrightDriver:
    """BrowserContext を Driver Protocol に適合させるアダプタ。"""

    def __init__(self, context: BrowserContext, page: Optional[Page] = None) -> None:
        """PlaywrightDriver を初期化する。

        Args:
            context: 操作対象の BrowserContext
            page: 初期ウィンドウ。None の場合は既存の先頭 Page、なければ新規作成
        """
        self._context = context
        self._handles: dict[str, Page] = {}
        self._page_ids: dict[int, str] = {}
        self._sequence = itertools.count(1)

        if page is None:
            page = context.pages[0] if context.pages else context.new_page()
        self._current: Optional[Page] = page
        self._frame: Optional[Frame] = None
        self._handle_for(page)

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    def _handle_for(self, page: Page) -> str:
        handle = self._page_ids.get(id(page))
        if handle is None:
            handle = f"page-{next(self._sequence)}"
            self._page_ids[id(page)] = handle
            self._handles[handle] = page
        return handle

    def _forget_closed(self) -> None:
        for handle, page in list(self._handles.items()):
            if page.is_closed():
                del self._handles[handle]
                del self._page_ids[id(page)]

    @property
    def _page(self) -> Page:
        if self._current is None or self._current.is_closed():
            raise NoSuchWindowError("現在のウィンドウは既に閉じられています")
        return self._current

    @property
    def _target(self) -> Union[Page, Frame]:
        return self._frame if self._frame is not None else self._page

    # -------------------------------------------------------------------
    # 要素
    # -------------------------------------------------------------------

    def find_elements(self, locator: Locator) -> list[Any]:
        target = self._target
        try:
            if locator.strategy == "test_id":
                return target.get_by_test_id(locator.value).all()
            return target.locator(to_selector(locator)).all()
        except PlaywrightError as exc:
            raise DriverError(f"要素検索に失敗しました: {locator}: {exc}") from exc

    def scroll_into_view(self, element: Any) -> None:
        try:
            element.scroll_into_view_if_needed()
        except PlaywrightError as exc:
            raise DriverError(f"要素をスクロールできません: {exc}") from exc

    def is_displayed(self, element: Any) -> bool:
        try:
            return element.is_visible()
        except PlaywrightError as exc:
            raise DriverError(str(exc)) from exc

    def is_enabled(self, element: Any) -> bool:
        try:
            return element.is_enabled()
        except PlaywrightError as exc:
            raise DriverError(str(exc)) from exc

    # -------------------------------------------------------------------
    # ページ情報
    # -------------------------------------------------------------------

    @property
    def current_url(self) -> str:
        return self._page.url

    @property
    def title(self) -> str:
        try:
            return self._page.title()
        except PlaywrightError as exc:
            raise NoSuchWindowError(str(exc)) from exc

    # -------------------------------------------------------------------
    # ウィンドウ
    # -------------------------------------------------------------------

    @property
    def window_handles(self) -> list[str]:
        self._forget_closed()
        return [self._handle_for(page) for page in self._context.pages if not page.is_closed()]

    @property
    def current_window_handle(self) -> str:
        return self._handle_for(self._page)

    def switch_to_window(self, handle: str) -> None:
        page = self._handles.get(handle)
        if page is None or page.is_closed():
            raise NoSuchWindowError(f"ウィンドウが存在しません: {handle}")
        self._current = page
        self._frame = None
        try:
            page.bring_to_front()
        except PlaywrightError as exc:
            raise NoSuchWindowError(f"ウィンドウが存在しません: {handle}") from exc

    def close(self) -> None:
        page = self._page
        self._current = None
        self._frame = None
        page.close()
        self._forget_closed()

    # -------------------------------------------------------------------
    # フレーム
    # -------------------------------------------------------------------

    def _find_child_frame(self, target: FrameTarget) -> Optional[Frame]:
        parent = self._frame if self._frame is not None else self._page.main_frame
        children = parent.child_frames

        if isinstance(target, bool):
            return None
        if isinstance(target, int):
            return children[target] if 0 <= target < len(children) else None
        if isinstance(target, str):
            for child in children:
                if child.name == target:
                    return child
            for child in children:
                if child.frame_element().get_attribute("id") == target:
                    return child
            return None

        handle = target.element_handle() if hasattr(target, "element_handle") else target
        return handle.content_frame()

    def switch_to_frame(self, target: FrameTarget) -> None:
        try:
            frame = self._find_child_frame(target)
        except PlaywrightError as exc:
            raise NoSuchFrameError(f"フレームを取得できません: {target}: {exc}") from exc
        if frame is None:
            raise NoSuchFrameError(f"フレームが存在しません: {target}")
        self._frame = frame

    def switch_to_default_content(self) -> None:
        self._frame = None

    # -------------------------------------------------------------------
    # ナビゲーション・その他
    # -------------------------------------------------------------------

    def navigate(self, url: str) -> None:
        self._frame = None
        self._page.goto(url)
        self._page.wait_for_load_state("domcontentloaded")

    def go_back(self) -> None:
        self._frame = None
        self._page.go_back()

    def run_script(self, script: str, *args: Any) -> Any:
        if not args:
            return self._target.evaluate(script)
        arg = args[0] if len(args) == 1 else list(args)
        return self._target.evaluate(script, arg)

    def screenshot(self, path: Union[str, Path]) -> Path:
        self._page.screenshot(path=str(path))
        return Path(path)
