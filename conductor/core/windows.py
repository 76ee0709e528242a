"""
WindowMatcher — ウィンドウハンドルの列挙・パターン照合・切り替え

状態遷移: SEARCHING → FOUND | RETRY_EXHAUSTED

主な機能:
  - switch_to_window: 既存ウィンドウからタイトル → URL の順で照合し切り替え
  - wait_for_window: ウィンドウがまだ存在しない場合に共有カウンタで再試行
  - close_window: 現在のウィンドウ、またはパターンに一致するウィンドウを閉じる

ウィンドウハンドルは呼び出しのたびに列挙し直し、キャッシュしない。
列挙順は変更せず、最初に一致したハンドルを採用する。
正規表現は呼び出しごとにローカルでコンパイルする（インスタンスに保持しない）。
"""

from __future__ import annotations

import enum
import logging
import re
import time
from typing import TYPE_CHECKING, Callable, Optional

from ..driver.base import NoSuchWindowError
from ..errors import WindowNotFound
from .waits import DEFAULT_INTERVAL, AttemptCounter

if TYPE_CHECKING:
    from ..driver.base import Driver

logger = logging.getLogger(__name__)


class WindowSearchState(enum.Enum):
    """ウィンドウ探索の状態。"""

    SEARCHING = "searching"
    FOUND = "found"
    RETRY_EXHAUSTED = "retry_exhausted"


class WindowMatcher:
    """ウィンドウハンドルをパターンで照合して切り替える。"""

    def __init__(
        self,
        driver: Driver,
        retries: int,
        interval: float = DEFAULT_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """WindowMatcher を初期化する。

        Args:
            driver: ウィンドウ操作に使うドライバ
            retries: wait_for_window の試行回数の上限
            interval: 再試行間のスリープ秒数
            sleep: スリープ関数（テストで差し替え可能）
        """
        self._driver = driver
        self._retries = retries
        self._interval = interval
        self._sleep = sleep
        self._state = WindowSearchState.SEARCHING

    @property
    def state(self) -> WindowSearchState:
        """直近の探索の状態を返す。"""
        return self._state

    # -------------------------------------------------------------------
    # 照合
    # -------------------------------------------------------------------

    def _matches_current(self, pattern: re.Pattern[str]) -> bool:
        """現在のウィンドウがパターンに一致するか（タイトル → URL の順）。"""
        title = self._driver.title
        url = self._driver.current_url
        logger.info("ウィンドウを確認: title=%s ; url=%s", title, url)
        return bool(pattern.search(title) or pattern.search(url))

    def _scan(self, pattern: re.Pattern[str]) -> Optional[str]:
        """全ハンドルに順に切り替えて照合し、最初に一致したハンドルを返す。

        一致したウィンドウにドライバを残す。

        Raises:
            NoSuchWindowError: 列挙後にハンドルが消えていた場合
        """
        for handle in self._driver.window_handles:
            self._driver.switch_to_window(handle)
            if self._matches_current(pattern):
                return handle
        return None

    # -------------------------------------------------------------------
    # パブリック API
    # -------------------------------------------------------------------

    def switch_to_window(self, pattern: str) -> str:
        """既存のウィンドウからパターンに一致するものへ切り替える。

        Args:
            pattern: タイトルまたは URL に対する正規表現（部分一致）

        Returns:
            切り替え先のハンドル

        Raises:
            WindowNotFound: 一致するウィンドウがない場合
        """
        compiled = re.compile(pattern)
        self._state = WindowSearchState.SEARCHING
        try:
            handle = self._scan(compiled)
        except NoSuchWindowError as exc:
            self._state = WindowSearchState.RETRY_EXHAUSTED
            raise WindowNotFound(pattern) from exc

        if handle is None:
            self._state = WindowSearchState.RETRY_EXHAUSTED
            raise WindowNotFound(pattern)

        self._state = WindowSearchState.FOUND
        logger.info("ウィンドウに切り替えました: %s (%s)", handle, pattern)
        return handle

    def wait_for_window(
        self, pattern: str, counter: Optional[AttemptCounter] = None,
    ) -> str:
        """パターンに一致するウィンドウが現れるまで待機して切り替える。

        一致しない場合、または列挙後にハンドルが消えていた場合は
        interval だけスリープして再試行する。どちらの場合も同じカウンタを
        消費するため、総待機時間は retries * interval で抑えられる。

        Args:
            pattern: タイトルまたは URL に対する正規表現（部分一致）
            counter: 共有する試行カウンタ（None の場合は新規作成）

        Returns:
            切り替え先のハンドル

        Raises:
            WindowNotFound: 試行回数を使い切った場合
        """
        compiled = re.compile(pattern)
        if counter is None:
            counter = AttemptCounter(limit=max(self._retries, 1))
        self._state = WindowSearchState.SEARCHING

        while True:
            try:
                handle = self._scan(compiled)
            except NoSuchWindowError as exc:
                logger.debug("ウィンドウが切り替え前に消えました: %s", exc)
                handle = None

            if handle is not None:
                counter.reset()
                self._state = WindowSearchState.FOUND
                logger.info("ウィンドウに切り替えました: %s (%s)", handle, pattern)
                return handle

            attempts = counter.increment()
            if counter.exhausted:
                self._state = WindowSearchState.RETRY_EXHAUSTED
                raise WindowNotFound(pattern, attempts)

            logger.info(
                "ウィンドウがまだ存在しません [%s]。再試行します %d/%d",
                pattern, attempts, counter.limit,
            )
            self._sleep(self._interval)

    def close_window(self, pattern: Optional[str] = None) -> None:
        """ウィンドウを閉じる。

        pattern が None の場合は現在のウィンドウを閉じ、残りが 1 つなら
        そのウィンドウに切り替える。

        pattern を指定した場合はタイトル → URL の順で照合し、最初に一致した
        ウィンドウを閉じる。閉じる前のハンドル数がちょうど 2 つだった場合のみ
        残った 1 つに切り替える。3 つ以上の場合は切り替えないため、
        呼び出し側で switch_to_window() を行う必要がある。

        照合のために各ウィンドウへ順に切り替えるため、一致するウィンドウが
        なかった場合、ドライバは走査した最後のウィンドウ（列挙順の末尾）に
        留まる。元のウィンドウには戻さない。

        Raises:
            WindowNotFound: 一致するウィンドウがない、または走査中に消えた場合
        """
        if pattern is None:
            self._driver.close()
            remaining = self._driver.window_handles
            if len(remaining) == 1:
                self._driver.switch_to_window(remaining[0])
                logger.info("残りのウィンドウに切り替えました: %s", remaining[0])
            return

        compiled = re.compile(pattern)
        handles = self._driver.window_handles
        try:
            for handle in handles:
                self._driver.switch_to_window(handle)
                if not self._matches_current(compiled):
                    continue

                self._driver.close()
                logger.info("ウィンドウを閉じました: %s (%s)", handle, pattern)
                if len(handles) == 2:
                    survivor = next(h for h in handles if h != handle)
                    self._driver.switch_to_window(survivor)
                    logger.info("残りのウィンドウに切り替えました: %s", survivor)
                return
        except NoSuchWindowError as exc:
            raise WindowNotFound(pattern) from exc

        raise WindowNotFound(pattern)
