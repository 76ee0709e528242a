"""
FrameNavigator — フレームコンテキストの切り替え

フレームの存在はページ構造として前提とする（描画途中の要素とは異なる）ため、
切り替え失敗はリトライせず、即座に FrameSwitchFailed として報告する。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import FrameSwitchFailed

if TYPE_CHECKING:
    from ..driver.base import Driver, FrameTarget

logger = logging.getLogger(__name__)


class FrameNavigator:
    """フレームへの切り替えとトップレベルへの復帰を行う。"""

    def __init__(self, driver: Driver) -> None:
        self._driver = driver

    def switch_to_frame(self, target: FrameTarget) -> None:
        """id / name、インデックス、または要素参照でフレームに切り替える。

        Raises:
            FrameSwitchFailed: 切り替えに失敗した場合（リトライしない）
        """
        try:
            self._driver.switch_to_frame(target)
        except Exception as exc:
            raise FrameSwitchFailed(target) from exc
        logger.debug("フレームに切り替えました: %s", target)

    def switch_to_default_content(self) -> None:
        """トップレベルのドキュメントに戻る。既にトップレベルなら何も変わらない。"""
        self._driver.switch_to_default_content()
