# tests/test_main.py
"""
Тесты выбора режима запуска.
"""

from __future__ import annotations

import pytest

from main import VALID_MODES, resolve_mode


class TestResolveMode:
    """Тесты resolve_mode."""

    @pytest.mark.parametrize("mode", VALID_MODES)
    def test_explicit_mode(self, mode) -> None:
        assert resolve_mode(mode) == mode

    def test_default_from_config(self) -> None:
        assert resolve_mode(None) in VALID_MODES

    def test_unknown_mode(self) -> None:
        with pytest.raises(ValueError):
            resolve_mode("bot")
