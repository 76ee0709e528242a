# コアモジュール
# ロケータ、待機戦略、ウィンドウ・フレーム切り替え、失敗時成果物を提供

from .artifacts import FailureArtifacts
from .frames import FrameNavigator
from .locator import Locator, LocatorLike, as_locator
from .waits import (
    AttemptCounter,
    ConditionWait,
    PollingWait,
    wait_for_condition,
    wait_until_interactable,
)
from .windows import WindowMatcher, WindowSearchState

__all__ = [
    "AttemptCounter",
    "ConditionWait",
    "FailureArtifacts",
    "FrameNavigator",
    "Locator",
    "LocatorLike",
    "PollingWait",
    "WindowMatcher",
    "WindowSearchState",
    "as_locator",
    "wait_for_condition",
    "wait_until_interactable",
]
