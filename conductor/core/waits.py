"""
待機戦略 — 非決定的な DOM と決定的なアサーションの橋渡し

全ての待機はテストスレッドを time.sleep でブロックする。
並行ポーリングや協調的マルチタスクは行わない。

主な機能:
  - AttemptCounter: 1 回の論理的な待機呼び出しで共有される試行カウンタ
  - PollingWait: 試行回数ベースの要素待機（wait_for_elements / wait_for_element）
  - wait_for_condition / ConditionWait: 経過時間ベースの条件待機
  - wait_until_interactable: 操作前提条件（可視 → 有効）の待機

ポーリング間隔は固定（指数バックオフではない）。テスト作成者から見た
待機時間を予測可能にするため。
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, TypeVar

from ..driver.base import DriverError
from ..errors import ConditionTimeout, ElementNotFound
from .locator import LocatorLike, as_locator

if TYPE_CHECKING:
    from ..driver.base import Driver

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0
"""ポーリング間隔の既定値（秒）。"""

T = TypeVar("T")


# ---------------------------------------------------------------------------
# 試行カウンタ
# ---------------------------------------------------------------------------

@dataclass
class AttemptCounter:
    """1 回の論理的な待機呼び出しの中で共有される試行カウンタ。

    内部リトライ（一時的な障害を含む）ごとに新しい予算を与えず、
    同じカウンタを消費する。成功時に 0 に戻す。

    Attributes:
        limit: 試行回数の上限
        count: 失敗した試行の回数
    """

    limit: int
    count: int = 0

    @property
    def exhausted(self) -> bool:
        return self.count >= self.limit

    def increment(self) -> int:
        self.count += 1
        return self.count

    def reset(self) -> None:
        self.count = 0


# ---------------------------------------------------------------------------
# 要素待機（試行回数ベース）
# ---------------------------------------------------------------------------

class PollingWait:
    """ロケータに一致する要素が現れるまで、試行回数の予算内でポーリングする。

    使用例::

        waiter = PollingWait(driver, retries=config.retries)
        element = waiter.wait_for_element("#submit")
    """

    def __init__(
        self,
        driver: Driver,
        retries: int,
        interval: float = DEFAULT_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """PollingWait を初期化する。

        Args:
            driver: 要素検索に使うドライバ
            retries: 試行回数の上限（0 の場合も即時検索は 1 回行う）
            interval: 試行間のスリープ秒数
            sleep: スリープ関数（テストで差し替え可能）
        """
        if retries < 0:
            raise ValueError(f"retries は 0 以上である必要があります: {retries}")
        self._driver = driver
        self._retries = retries
        self._interval = interval
        self._sleep = sleep

    @property
    def retries(self) -> int:
        return self._retries

    def _query(self, locator: Any) -> list[Any]:
        try:
            return list(self._driver.find_elements(locator))
        except DriverError as exc:
            logger.debug("要素検索中に一時的なエラー: %s (%s)", locator, exc)
            return []

    def _attempts(self, locator: Any) -> Iterator[int]:
        """試行番号を 1 から順に返す。2 回目以降は直前に interval だけスリープする。

        合計 max(retries, 1) 回で終了する。
        """
        budget = max(self._retries, 1)
        for attempt in range(1, budget + 1):
            if attempt > 1:
                logger.debug(
                    "要素 %s が見つかりません。再試行します (%d/%d)",
                    locator, attempt - 1, budget,
                )
                self._sleep(self._interval)
            yield attempt

    def wait_for_elements(self, locator: LocatorLike) -> list[Any]:
        """要素を検索し、見つかるまで固定間隔で再検索する。

        即時に 1 回検索し、0 件なら interval だけスリープして再検索する。
        合計 retries 回の試行で見つからなければ空リストを返す。

        Args:
            locator: 検索対象（文字列は css セレクタ）

        Returns:
            一致した要素のリスト（予算切れの場合は空）
        """
        locator = as_locator(locator)
        for attempt in self._attempts(locator):
            elements = self._query(locator)
            if elements:
                logger.debug("要素 %s を発見しました（%d 回目の試行）", locator, attempt)
                return elements
        return []

    def wait_for_element(self, locator: LocatorLike) -> Any:
        """要素を 1 つ待機し、画面内にスクロールしてから返す。

        複数一致した場合は警告をログに出し、先頭の要素を使う。
        スクロール中の DriverError（検索後に要素が DOM から外れた等）は
        0 件と同じ扱いで、同じ予算の中で再検索する。

        Raises:
            ElementNotFound: 予算内に要素が見つからなかった場合
        """
        locator = as_locator(locator)
        for attempt in self._attempts(locator):
            elements = self._query(locator)
            if not elements:
                continue

            if len(elements) > 1:
                logger.warning(
                    "%s に一致する要素が %d 件あります。先頭の要素を使用します",
                    locator, len(elements),
                )

            element = elements[0]
            try:
                self._driver.scroll_into_view(element)
            except DriverError as exc:
                logger.debug("要素 %s をスクロールできません: %s", locator, exc)
                continue

            logger.debug("要素 %s を発見しました（%d 回目の試行）", locator, attempt)
            return element

        raise ElementNotFound(locator, self._retries)


# ---------------------------------------------------------------------------
# 条件待機（経過時間ベース）
# ---------------------------------------------------------------------------

def wait_for_condition(
    predicate: Callable[[], T],
    timeout: float,
    poll_interval: float = DEFAULT_INTERVAL,
    description: Optional[str] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """predicate が真になるまで固定間隔で評価する。

    タイムアウトは待機開始時刻から計算する。評価中の predicate を
    中断することはできないため、遅い predicate はタイムアウトを超過しうる。
    predicate が DriverError を送出した場合は「未成立」として評価を続ける。

    Args:
        predicate: 評価する関数（真値を返せば成立）
        timeout: タイムアウト（秒）
        poll_interval: 評価間隔（秒）
        description: ログ・エラーメッセージ用の条件名

    Returns:
        predicate が返した真値

    Raises:
        ConditionTimeout: タイムアウトまでに成立しなかった場合
    """
    name = description or getattr(predicate, "__name__", "condition")
    start = clock()

    while True:
        try:
            result = predicate()
        except DriverError as exc:
            logger.debug("条件 '%s' の評価中に一時的なエラー: %s", name, exc)
            result = None

        if result:
            return result

        elapsed = clock() - start
        if elapsed >= timeout:
            raise ConditionTimeout(name, timeout)

        logger.debug("条件 '%s' は未成立です（%.1f 秒経過）", name, elapsed)
        sleep(min(poll_interval, timeout - elapsed))


class ConditionWait:
    """実効設定のタイムアウトを既定値として条件待機を行う。"""

    def __init__(
        self,
        timeout: float,
        poll_interval: float = DEFAULT_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if timeout < 0:
            raise ValueError(f"timeout は 0 以上である必要があります: {timeout}")
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    @property
    def timeout(self) -> float:
        return self._timeout

    def wait_for_condition(
        self,
        predicate: Callable[[], T],
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        description: Optional[str] = None,
    ) -> T:
        """wait_for_condition() を既定のタイムアウト・間隔で呼び出す。"""
        return wait_for_condition(
            predicate,
            self._timeout if timeout is None else timeout,
            self._poll_interval if poll_interval is None else poll_interval,
            description,
            sleep=self._sleep,
            clock=self._clock,
        )


def wait_until_interactable(
    driver: Driver,
    element: Any,
    condition_wait: ConditionWait,
) -> Any:
    """要素が操作可能になるまで待機する。

    「不可視でない」→「クリック可能（有効）」の順に確認する。
    クリック・入力などの操作の前提条件として使用する。

    Raises:
        ConditionTimeout: いずれかの条件がタイムアウトした場合
    """
    condition_wait.wait_for_condition(
        lambda: driver.is_displayed(element), description="要素が可視",
    )
    condition_wait.wait_for_condition(
        lambda: driver.is_enabled(element), description="要素がクリック可能",
    )
    return element
