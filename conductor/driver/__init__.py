# ドライバモジュール
# Driver Protocol、Playwright アダプタ、ブラウザセッション管理を提供

from .base import Driver, DriverError, FrameTarget, NoSuchFrameError, NoSuchWindowError
from .playwright_driver import PlaywrightDriver, to_selector
from .session import BrowserSession, SessionState

__all__ = [
    "BrowserSession",
    "Driver",
    "DriverError",
    "FrameTarget",
    "NoSuchFrameError",
    "NoSuchWindowError",
    "PlaywrightDriver",
    "SessionState",
    "to_selector",
]
