"""
ConfigResolver / resolve_config のユニットテスト

テスト対象:
  - 優先順位: defaults < per-test < external（項目ごとに独立）
  - URL 合成: base_url + path、base_url 未設定時は url
  - custom_capabilities のキー単位マージ
  - 不正値: per-test / external は ConfigError、defaults は未設定扱い
  - キー表記の別名、EffectiveConfig の不変性
  - スキームの適用順、外部オーバーライドによるスキーム指定
  - from_sources(): YAML ドキュメント + 環境変数からの構築
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from conductor.config import (
    Browser,
    ConfigDocument,
    ConfigResolver,
    DeclaredConfig,
    ExternalOverrides,
    compose_url,
    resolve_config,
)
from conductor.errors import ConfigError


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー
# ---------------------------------------------------------------------------

def make_optional_int_strategy():
    """未設定（None）または 0 以上の整数を生成する。"""
    return st.one_of(st.none(), st.integers(min_value=0, max_value=600))


def make_capabilities_strategy():
    """custom_capabilities 用の辞書を生成する。"""
    return st.dictionaries(
        st.sampled_from(["locale", "timezone_id", "user_agent", "color_scheme", "foo"]),
        st.text(min_size=1, max_size=20),
        max_size=4,
    )


# ===========================================================================
# テスト: 優先順位
# ===========================================================================

class TestPrecedence:
    """defaults → per-test → external の優先順位テスト。"""

    def test_external_wins_over_per_test_and_defaults(self) -> None:
        """3 ソース全てに timeout がある場合は external の値が使われること。"""
        config = resolve_config(
            per_test=DeclaredConfig(timeout=10),
            external=ExternalOverrides(values={"timeout": "15"}),
            defaults={"timeout": 5},
        )
        assert config.timeout == 15

    def test_per_test_wins_over_defaults(self) -> None:
        """external が無い場合は per-test の値が使われること。"""
        config = resolve_config(
            per_test=DeclaredConfig(timeout=10),
            defaults={"timeout": 7},
        )
        assert config.timeout == 10

    def test_defaults_used_when_nothing_else(self) -> None:
        """上位ソースが無い場合は defaults の値が使われること。"""
        config = resolve_config(defaults={"timeout": 7})
        assert config.timeout == 7

    def test_builtin_defaults(self) -> None:
        """何も指定しない場合は組み込みデフォルトになること。"""
        config = resolve_config()
        assert config.timeout == 5
        assert config.retries == 5
        assert config.screenshot_on_fail is True
        assert config.browser is Browser.NONE
        assert config.url == ""
        assert config.hub == ""
        assert dict(config.custom_capabilities) == {}

    def test_fields_resolved_independently(self) -> None:
        """項目ごとに独立して解決され、部分的な指定が混ざること。"""
        config = resolve_config(
            per_test=DeclaredConfig(browser="firefox"),
            external=ExternalOverrides(values={"retries": "2"}),
            defaults={"timeout": 9, "browser": "chrome"},
        )
        assert config.timeout == 9
        assert config.retries == 2
        assert config.browser is Browser.FIREFOX

    def test_blank_value_is_absent(self) -> None:
        """空文字の値は未設定として下位レイヤーが使われること。"""
        config = resolve_config(
            per_test={"hub": "   "},
            defaults={"hub": "http://grid:4444"},
        )
        assert config.hub == "http://grid:4444"

    def test_multiple_default_layers_later_wins(self) -> None:
        """defaults を複数渡した場合は後のレイヤーが優先されること。"""
        config = resolve_config(defaults=[{"retries": 1}, {"retries": 3}])
        assert config.retries == 3

    @settings(max_examples=60)
    @given(
        default=make_optional_int_strategy(),
        per_test=make_optional_int_strategy(),
        external=make_optional_int_strategy(),
    )
    def test_highest_present_source_wins(self, default, per_test, external) -> None:
        """どの組み合わせでも、設定されている最上位ソースの値になること。"""
        config = resolve_config(
            per_test=DeclaredConfig(retries=per_test),
            external=ExternalOverrides(
                values={} if external is None else {"retries": str(external)}
            ),
            defaults={} if default is None else {"retries": default},
        )

        expected = 5
        for candidate in (default, per_test, external):
            if candidate is not None:
                expected = candidate
        assert config.retries == expected


# ===========================================================================
# テスト: URL 合成
# ===========================================================================

class TestUrlComposition:
    """base_url + path による URL 合成テスト。"""

    @pytest.mark.parametrize(
        "base_url, path, expected",
        [
            ("https://example.com", "/login", "https://example.com/login"),
            ("https://example.com/", "/login", "https://example.com/login"),
            ("https://example.com/", "login", "https://example.com/login"),
            ("https://example.com", "", "https://example.com/"),
            ("https://example.com/app", "/items/1", "https://example.com/app/items/1"),
        ],
    )
    def test_compose_url(self, base_url: str, path: str, expected: str) -> None:
        """境界の "/" がちょうど 1 つになること。"""
        assert compose_url(base_url, path) == expected

    def test_url_composed_from_base_and_path(self) -> None:
        """base_url と path が別ソースでも合成されること。"""
        config = resolve_config(
            per_test=DeclaredConfig(path="/login"),
            defaults={"baseUrl": "https://example.com"},
        )
        assert config.url == "https://example.com/login"
        assert config.base_url == "https://example.com"
        assert config.path == "/login"

    def test_base_url_takes_priority_over_url(self) -> None:
        """base_url が設定されていれば url は使われないこと。"""
        config = resolve_config(
            per_test=DeclaredConfig(url="https://ignored.example.com"),
            defaults={"baseUrl": "https://example.com"},
        )
        assert config.url == "https://example.com/"

    def test_url_used_when_no_base_url(self) -> None:
        """base_url 未設定時は url がそのまま使われること。"""
        config = resolve_config(per_test=DeclaredConfig(url="https://example.com/app"))
        assert config.url == "https://example.com/app"


# ===========================================================================
# テスト: custom_capabilities
# ===========================================================================

class TestCapabilities:
    """custom_capabilities のキー単位マージテスト。"""

    def test_key_union_later_wins(self) -> None:
        """キーの和集合になり、同一キーは上位ソースが勝つこと。"""
        config = resolve_config(
            per_test=DeclaredConfig(custom_capabilities={"b": 3, "c": 4}),
            defaults={"customCapabilities": {"a": 1, "b": 2}},
        )
        assert dict(config.custom_capabilities) == {"a": 1, "b": 3, "c": 4}

    @settings(max_examples=40)
    @given(lower=make_capabilities_strategy(), upper=make_capabilities_strategy())
    def test_no_lower_key_is_lost(self, lower, upper) -> None:
        """下位ソースのキーがマージで失われないこと。"""
        config = resolve_config(
            per_test={"customCapabilities": upper},
            defaults={"customCapabilities": lower},
        )
        assert set(config.custom_capabilities) == set(lower) | set(upper)
        for key, value in upper.items():
            assert config.custom_capabilities[key] == value

    def test_malformed_capabilities_in_per_test(self) -> None:
        """per-test の capabilities がマッピングでない場合は ConfigError になること。"""
        with pytest.raises(ConfigError) as exc_info:
            resolve_config(per_test={"customCapabilities": ["locale"]})
        assert exc_info.value.source == "per-test"


# ===========================================================================
# テスト: 不正値の扱い
# ===========================================================================

class TestMalformedValues:
    """型変換に失敗した値の扱いのテスト。"""

    def test_external_malformed_timeout_raises(self) -> None:
        """external の timeout が数値でない場合は ConfigError になること。"""
        with pytest.raises(ConfigError) as exc_info:
            resolve_config(external=ExternalOverrides(values={"timeout": "abc"}))
        error = exc_info.value
        assert error.key == "timeout"
        assert error.value == "abc"
        assert error.source == "external"
        assert "abc" in str(error)

    def test_per_test_negative_retries_raises(self) -> None:
        """per-test の retries が負数の場合は ConfigError になること。"""
        with pytest.raises(ConfigError):
            resolve_config(per_test=DeclaredConfig(retries=-1))

    def test_per_test_unknown_browser_raises(self) -> None:
        """未知のブラウザ名は ConfigError になること。"""
        with pytest.raises(ConfigError):
            resolve_config(per_test=DeclaredConfig(browser="netscape"))

    def test_external_malformed_bool_raises(self) -> None:
        """真偽値として解釈できない値は ConfigError になること。"""
        with pytest.raises(ConfigError):
            resolve_config(
                external=ExternalOverrides(values={"screenshot_on_fail": "maybe"})
            )

    def test_defaults_malformed_value_falls_through(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        """defaults の不正値は未設定として扱われ、警告ログが出ること。"""
        with caplog.at_level(logging.WARNING, logger="conductor.config.resolver"):
            config = resolve_config(defaults=[{"timeout": 8}, {"timeout": "soon"}])

        assert config.timeout == 8
        assert "soon" in caplog.text

    def test_defaults_malformed_value_falls_back_to_builtin(self) -> None:
        """defaults 全体で不正値しか無い場合は組み込みデフォルトになること。"""
        config = resolve_config(defaults={"retries": "many", "browser": 42})
        assert config.retries == 5
        assert config.browser is Browser.NONE

    @pytest.mark.parametrize(
        "raw, expected",
        [("true", True), ("YES", True), ("on", True), ("1", True),
         ("false", False), ("No", False), ("off", False), ("0", False)],
    )
    def test_bool_spellings(self, raw: str, expected: bool) -> None:
        """真偽値の表記ゆれが解釈されること。"""
        config = resolve_config(external=ExternalOverrides(values={"screenshot_on_fail": raw}))
        assert config.screenshot_on_fail is expected

    def test_integral_float_accepted(self) -> None:
        """整数値の float（YAML の 10.0 等）は整数として受け付けること。"""
        config = resolve_config(per_test={"timeout": 10.0})
        assert config.timeout == 10

    def test_unknown_key_ignored(self) -> None:
        """未知のキーは無視されること。"""
        config = resolve_config(defaults={"colour": "blue", "retries": 2})
        assert config.retries == 2


# ===========================================================================
# テスト: キー表記・不変性
# ===========================================================================

class TestKeysAndImmutability:
    """キー表記の別名と EffectiveConfig の不変性テスト。"""

    @pytest.mark.parametrize(
        "key", ["screenshotOnFail", "screenshot_on_fail", "screenshotsOnFail"],
    )
    def test_screenshot_aliases(self, key: str) -> None:
        """screenshot_on_fail の各表記が受け付けられること。"""
        config = resolve_config(defaults={key: False})
        assert config.screenshot_on_fail is False

    def test_non_string_key_ignored(self) -> None:
        """文字列以外のキーは未知のキーとして無視され、他の項目は解決されること。"""
        document = ConfigDocument.model_validate({"defaults": {"timeout": 7, 1: "x"}})
        config = ConfigResolver(document).resolve()
        assert config.timeout == 7

    def test_effective_config_is_frozen(self) -> None:
        """EffectiveConfig の属性は変更できないこと。"""
        config = resolve_config()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.timeout = 99  # type: ignore[misc]

    def test_capabilities_read_only(self) -> None:
        """custom_capabilities は変更できないこと。"""
        config = resolve_config(per_test={"customCapabilities": {"locale": "ja-JP"}})
        with pytest.raises(TypeError):
            config.custom_capabilities["locale"] = "en-US"  # type: ignore[index]

    def test_source_mapping_not_shared(self) -> None:
        """解決後に元の辞書を変更しても実効設定に影響しないこと。"""
        caps = {"locale": "ja-JP"}
        config = resolve_config(per_test={"customCapabilities": caps})
        caps["locale"] = "en-US"
        assert config.custom_capabilities["locale"] == "ja-JP"


# ===========================================================================
# テスト: ConfigResolver とスキーム
# ===========================================================================

def _document() -> ConfigDocument:
    return ConfigDocument.model_validate({
        "defaults": {"baseUrl": "https://example.com", "timeout": 5, "browser": "chromium"},
        "currentSchemes": ["stage", "slow"],
        "stage": {"baseUrl": "https://stage.example.com"},
        "slow": {"timeout": 30, "retries": 10},
        "remote": {"hub": "ws://grid:3000/", "browser": "firefox"},
    })


class TestConfigResolver:
    """ConfigResolver のテスト。"""

    def test_schemes_applied_in_order(self) -> None:
        """currentSchemes の順にスキームが defaults に重ねられること。"""
        resolver = ConfigResolver(document=_document())
        config = resolver.resolve(DeclaredConfig(path="/login"))

        assert config.url == "https://stage.example.com/login"
        assert config.timeout == 30
        assert config.retries == 10
        assert config.current_schemes == ("stage", "slow")

    def test_per_test_wins_over_scheme(self) -> None:
        """スキームは defaults レイヤーなので per-test が優先されること。"""
        resolver = ConfigResolver(document=_document())
        config = resolver.resolve(DeclaredConfig(timeout=12))
        assert config.timeout == 12

    def test_external_schemes_override_document(self) -> None:
        """外部オーバーライドのスキーム指定がドキュメントの指定を置き換えること。"""
        resolver = ConfigResolver(
            document=_document(),
            external=ExternalOverrides(current_schemes=("remote",)),
        )
        config = resolver.resolve()

        assert resolver.current_schemes == ("remote",)
        assert config.hub == "ws://grid:3000/"
        assert config.is_remote
        assert config.browser is Browser.FIREFOX
        assert config.url == "https://example.com/"

    def test_unknown_scheme_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        """未定義のスキームは警告を出して無視されること。"""
        with caplog.at_level(logging.WARNING, logger="conductor.config.resolver"):
            resolver = ConfigResolver(
                document=_document(),
                external=ExternalOverrides(current_schemes=("missing", "slow")),
            )
            config = resolver.resolve()

        assert "missing" in caplog.text
        assert config.timeout == 30

    def test_stored_defaults_below_document(self) -> None:
        """保存済みデフォルトはドキュメントの defaults より下位であること。"""
        resolver = ConfigResolver(
            document=ConfigDocument.model_validate({"defaults": {"timeout": 6}}),
            stored_defaults={"timeout": 4, "hub": "ws://stored:3000/"},
        )
        config = resolver.resolve()
        assert config.timeout == 6
        assert config.hub == "ws://stored:3000/"

    def test_resolve_is_repeatable(self) -> None:
        """同じ入力に対して等しい実効設定が得られること。"""
        resolver = ConfigResolver(document=_document())
        assert resolver.resolve(DeclaredConfig(path="/a")) == resolver.resolve(
            DeclaredConfig(path="/a")
        )

    def test_from_sources(self, tmp_path: Path) -> None:
        """YAML ドキュメントと環境変数から構築できること。"""
        document = tmp_path / "conductor.yaml"
        document.write_text(
            "defaults:\n"
            "  baseUrl: http://localhost:4200\n"
            "  retries: 3\n"
            "currentSchemes: [ci]\n"
            "ci:\n"
            "  browser: chromium\n"
            "  customCapabilities:\n"
            "    locale: ja-JP\n",
            encoding="utf-8",
        )
        environ = {"CONDUCTOR_TIMEOUT": "20", "CONDUCTOR_PATH": "/dashboard"}

        resolver = ConfigResolver.from_sources(document_path=document, environ=environ)
        config = resolver.resolve()

        assert config.url == "http://localhost:4200/dashboard"
        assert config.timeout == 20
        assert config.retries == 3
        assert config.browser is Browser.CHROMIUM
        assert dict(config.custom_capabilities) == {"locale": "ja-JP"}

    def test_from_sources_malformed_env_raises(self, tmp_path: Path) -> None:
        """環境変数の不正値は resolve() で ConfigError になること。"""
        resolver = ConfigResolver.from_sources(
            document_path=tmp_path / "missing.yaml",
            environ={"CONDUCTOR_RETRIES": "three"},
        )
        with pytest.raises(ConfigError):
            resolver.resolve()
