"""
テスト共通フィクスチャ定義

全テストモジュールで共有するフェイクドライバ・フェイク時計を
フィクスチャとして提供する。実際のブラウザは起動しない。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import pytest

from conductor.driver.base import DriverError, NoSuchFrameError, NoSuchWindowError


# ---------------------------------------------------------------------------
# フェイク時計
# ---------------------------------------------------------------------------

class FakeClock:
    """sleep() で時刻が進む単調時計。

    Attributes:
        now: 現在時刻（秒）
        sleeps: sleep() に渡された秒数の履歴
    """

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []
        self.on_sleep = None

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(len(self.sleeps))


# ---------------------------------------------------------------------------
# フェイクドライバ
# ---------------------------------------------------------------------------

@dataclass
class FakeElement:
    """フェイクドライバが返す要素。"""

    name: str
    displayed: bool = True
    enabled: bool = True
    frame: Optional[str] = None


@dataclass
class FakeWindow:
    title: str
    url: str
    frames: list[str] = field(default_factory=list)


class FakeDriver:
    """Driver Protocol を満たすスクリプト可能なフェイク。

    要素検索の結果はロケータ値ごとに「試行ごとの結果列」で指定する。
    結果列を使い切った後は最後の結果を返し続ける。
    """

    def __init__(self, windows: Optional[list[tuple[str, str]]] = None) -> None:
        self.windows: dict[str, FakeWindow] = {}
        self.current: Optional[str] = None
        self.frame_stack: list[Any] = []
        self.element_script: dict[str, list[list[FakeElement]]] = {}
        self.queries: list[Any] = []
        self.scrolled: list[FakeElement] = []
        self.scroll_errors = 0
        self.switch_calls: list[str] = []
        self.vanishing: dict[str, int] = {}
        self.navigated: list[str] = []
        self.screenshots: list[Path] = []
        self.screenshot_error: Optional[Exception] = None
        self.events: list[str] = []
        self._sequence = 0
        for title, url in windows or []:
            self.add_window(title, url)

    # --- スクリプト設定 ---

    def add_window(self, title: str, url: str, frames: Optional[list[str]] = None) -> str:
        self._sequence += 1
        handle = f"w-{self._sequence}"
        self.windows[handle] = FakeWindow(title, url, list(frames or []))
        if self.current is None:
            self.current = handle
        return handle

    def script_elements(self, value: str, *results: list[FakeElement]) -> None:
        self.element_script[value] = list(results)

    def vanish(self, handle: str, times: int = 1) -> None:
        """次の times 回の switch_to_window(handle) で NoSuchWindowError を送出する。"""
        self.vanishing[handle] = times

    # --- Driver Protocol ---

    def find_elements(self, locator: Any) -> list[FakeElement]:
        self.queries.append(locator)
        results = self.element_script.get(locator.value)
        if not results:
            return []
        if len(results) > 1:
            return list(results.pop(0))
        return list(results[0])

    def detach_on_scroll(self, times: int = 1) -> None:
        """次の times 回の scroll_into_view() で DriverError を送出する。"""
        self.scroll_errors = times

    def scroll_into_view(self, element: FakeElement) -> None:
        if self.scroll_errors > 0:
            self.scroll_errors -= 1
            raise DriverError(f"要素が DOM から外れています: {element.name}")
        self.scrolled.append(element)

    def is_displayed(self, element: FakeElement) -> bool:
        return element.displayed

    def is_enabled(self, element: FakeElement) -> bool:
        return element.enabled

    def _window(self) -> FakeWindow:
        if self.current is None or self.current not in self.windows:
            raise NoSuchWindowError("現在のウィンドウは閉じられています")
        return self.windows[self.current]

    @property
    def current_url(self) -> str:
        return self._window().url

    @property
    def title(self) -> str:
        return self._window().title

    @property
    def window_handles(self) -> list[str]:
        return list(self.windows)

    @property
    def current_window_handle(self) -> str:
        self._window()
        return self.current

    def switch_to_window(self, handle: str) -> None:
        self.switch_calls.append(handle)
        remaining = self.vanishing.get(handle, 0)
        if remaining > 0:
            self.vanishing[handle] = remaining - 1
            raise NoSuchWindowError(f"ウィンドウが存在しません: {handle}")
        if handle not in self.windows:
            raise NoSuchWindowError(f"ウィンドウが存在しません: {handle}")
        self.current = handle
        self.frame_stack.clear()

    def close(self) -> None:
        self._window()
        del self.windows[self.current]
        self.current = None
        self.frame_stack.clear()

    def switch_to_frame(self, target: Any) -> None:
        if isinstance(target, FakeElement):
            if target.frame is None:
                raise NoSuchFrameError(f"要素はフレームではありません: {target.name}")
            self.frame_stack.append(target.frame)
            return
        frames = self._window().frames
        if isinstance(target, int):
            if not 0 <= target < len(frames):
                raise NoSuchFrameError(f"フレームが存在しません: {target}")
            self.frame_stack.append(frames[target])
            return
        if target not in frames:
            raise NoSuchFrameError(f"フレームが存在しません: {target}")
        self.frame_stack.append(target)

    def switch_to_default_content(self) -> None:
        self.frame_stack.clear()

    def navigate(self, url: str) -> None:
        self.navigated.append(url)
        self._window().url = url

    def go_back(self) -> None:
        self.events.append("back")

    def run_script(self, script: str, *args: Any) -> Any:
        return None

    def screenshot(self, path: Any) -> Path:
        if self.screenshot_error is not None:
            raise self.screenshot_error
        path = Path(path)
        path.write_bytes(b"\x89PNG")
        self.screenshots.append(path)
        self.events.append("screenshot")
        return path


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_clock() -> FakeClock:
    """sleep で時刻が進むフェイク時計。"""
    return FakeClock()


@pytest.fixture
def fake_driver() -> FakeDriver:
    """ウィンドウ "Home" だけを持つフェイクドライバ。"""
    return FakeDriver(windows=[("Home", "http://localhost:4200/")])


@pytest.fixture
def make_driver():
    """(タイトル, URL) の組からフェイクドライバを生成するファクトリ。

    使用例::

        driver = make_driver(("Home", "http://a/"), ("Popup", "http://b/"))
    """

    def _make(*windows: tuple[str, str]) -> FakeDriver:
        return FakeDriver(windows=list(windows))

    return _make


@pytest.fixture
def make_element():
    """FakeElement(name, displayed=True, enabled=True, frame=None) のファクトリ。"""
    return FakeElement
