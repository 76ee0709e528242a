"""
conductor CLI エントリポイント

python -m conductor で CLI を起動する。

使用例:
  python -m conductor config show -c conductor.yaml
  CONDUCTOR_CURRENT_SCHEMES=stage python -m conductor config validate
"""

from __future__ import annotations

from .cli import app

app()
