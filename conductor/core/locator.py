"""
Locator — 要素を特定するセレクタ値

css 相当の文字列、または構造化された識別子（id, name, xpath, text, test_id）を
不変の Pydantic モデルとして表現する。プレーンな文字列は css セレクタとして扱う。
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

Strategy = Literal["css", "xpath", "id", "name", "text", "test_id"]


class Locator(BaseModel):
    """要素を特定するセレクタ。"""

    model_config = ConfigDict(frozen=True)

    strategy: Strategy = Field(default="css", description="セレクタ種別")
    value: str = Field(..., min_length=1, description="セレクタ値")

    @classmethod
    def css(cls, value: str) -> "Locator":
        return cls(strategy="css", value=value)

    @classmethod
    def xpath(cls, value: str) -> "Locator":
        return cls(strategy="xpath", value=value)

    @classmethod
    def id(cls, value: str) -> "Locator":
        return cls(strategy="id", value=value)

    @classmethod
    def name(cls, value: str) -> "Locator":
        return cls(strategy="name", value=value)

    @classmethod
    def text(cls, value: str) -> "Locator":
        return cls(strategy="text", value=value)

    @classmethod
    def test_id(cls, value: str) -> "Locator":
        return cls(strategy="test_id", value=value)

    def __str__(self) -> str:
        return f"By.{self.strategy}: {self.value}"


LocatorLike = Union[Locator, str]


def as_locator(value: LocatorLike) -> Locator:
    """文字列（css セレクタ）または Locator を Locator に正規化する。"""
    if isinstance(value, Locator):
        return value
    return Locator.css(value)
