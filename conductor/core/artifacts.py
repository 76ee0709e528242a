"""
Artifacts — 失敗時の診断成果物（スクリーンショット）の保存

保存に失敗してもログに記録するだけで例外は送出しない。
元のテスト失敗を置き換えたり隠したりしてはならないため。

主な機能:
  - FailureArtifacts.capture_screenshot(): 失敗時スクリーンショットの保存
  - _sanitize_name(): テスト名をファイル名に安全な文字列に変換
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..driver.base import Driver

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w\-.]")
"""ファイル名に使用できない文字を検出する正規表現。"""


@dataclass
class FailureArtifacts:
    """失敗時の成果物を保存する。

    Attributes:
        base_dir: 成果物ベースディレクトリ（デフォルト: artifacts/screenshots）
    """

    base_dir: Path = field(default_factory=lambda: Path("artifacts") / "screenshots")

    def screenshot_path(self, test_name: str, timestamp: Optional[datetime] = None) -> Path:
        """スクリーンショットの保存先パスを返す。

        ファイル名は <test-name>-YYYYMMDD-HHMMSS.png 形式。
        """
        if timestamp is None:
            timestamp = datetime.now()
        name = _sanitize_name(test_name) or "test"
        return self.base_dir / f"{name}-{timestamp.strftime('%Y%m%d-%H%M%S')}.png"

    def capture_screenshot(self, driver: Driver, test_name: str) -> Optional[Path]:
        """失敗時のスクリーンショットを保存する。

        Args:
            driver: スクリーンショットを取得するドライバ
            test_name: テスト名（ファイル名に使用）

        Returns:
            保存したファイルのパス。保存に失敗した場合は None
        """
        path = self.screenshot_path(test_name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            saved = driver.screenshot(path)
        except Exception:
            logger.exception("スクリーンショットの保存に失敗しました: %s", test_name)
            return None

        logger.info("失敗時スクリーンショットを保存しました: %s", saved)
        return saved


def _sanitize_name(name: str) -> str:
    """テスト名をファイル名に安全な文字列に変換する。

    英数字、ハイフン、アンダースコア、ドット以外をハイフンに置換し、
    連続するハイフンを 1 つにまとめる。
    """
    sanitized = _UNSAFE_CHARS.sub("-", name)
    sanitized = re.sub(r"-+", "-", sanitized)
    return sanitized.strip("-")
