# 設定モジュール
# 設定スキーマ、設定ソース（環境変数・YAML ドキュメント）、リゾルバを提供

from .resolver import ConfigResolver, compose_url, resolve_config
from .schema import (
    Browser,
    ConfigDocument,
    DeclaredConfig,
    EffectiveConfig,
    declare_config,
    declared_config_of,
)
from .sources import (
    ExternalOverrides,
    load_config_document,
    load_overrides_from_env,
    parse_config_document,
)

__all__ = [
    "Browser",
    "ConfigDocument",
    "ConfigResolver",
    "DeclaredConfig",
    "EffectiveConfig",
    "ExternalOverrides",
    "compose_url",
    "declare_config",
    "declared_config_of",
    "load_config_document",
    "load_overrides_from_env",
    "parse_config_document",
    "resolve_config",
]
