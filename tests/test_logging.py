"""Tests for the shared logger setup."""

import logging

import pytest

from stampcut.logging import get_logger, resolve_level, set_verbose


@pytest.fixture
def restore_levels():
    names = ["stampcut.segmentation.mask", "stampcut.cli"]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


class TestResolveLevel:
    def test_library_defaults_to_warning(self, monkeypatch):
        monkeypatch.delenv("STAMPCUT_LOG_LEVEL", raising=False)
        assert resolve_level("stampcut.segmentation.mask") == logging.WARNING

    def test_cli_defaults_to_info(self, monkeypatch):
        monkeypatch.delenv("STAMPCUT_LOG_LEVEL", raising=False)
        assert resolve_level("stampcut.cli") == logging.INFO

    def test_env_overrides_both(self, monkeypatch):
        monkeypatch.setenv("STAMPCUT_LOG_LEVEL", "debug")
        assert resolve_level("stampcut.segmentation.mask") == logging.DEBUG
        assert resolve_level("stampcut.cli") == logging.DEBUG

    def test_unknown_level_falls_back(self, monkeypatch):
        monkeypatch.setenv("STAMPCUT_LOG_LEVEL", "LOUD")
        assert resolve_level("stampcut.cli") == logging.INFO


class TestGetLogger:
    def test_single_handler_per_logger(self):
        first = get_logger("stampcut.tests.handlers")
        second = get_logger("stampcut.tests.handlers")

        assert first is second
        assert len(first.handlers) == 1


class TestSetVerbose:
    def test_verbose_lowers_package_loggers(self, monkeypatch, restore_levels):
        monkeypatch.setenv("STAMPCUT_LOG_LEVEL", "WARNING")
        get_logger("stampcut.segmentation.mask")
        get_logger("stampcut.cli")
        outsider = logging.getLogger("somewhere.else")
        outsider_level = outsider.level

        set_verbose()

        assert logging.getLogger("stampcut.segmentation.mask").level == logging.DEBUG
        assert logging.getLogger("stampcut.cli").level == logging.DEBUG
        assert outsider.level == outsider_level

    def test_verbose_off_restores_resolved_level(self, monkeypatch, restore_levels):
        monkeypatch.setenv("STAMPCUT_LOG_LEVEL", "ERROR")
        get_logger("stampcut.segmentation.mask")

        set_verbose()
        set_verbose(False)

        assert logging.getLogger("stampcut.segmentation.mask").level == logging.ERROR
