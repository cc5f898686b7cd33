"""Tests for ViewerConfig."""

import argparse

import pytest

from vtree.config import DEFAULT_MAX_DATA_SIZE, ViewerConfig
from vtree.filter import FilterMode


class TestViewerConfig:
    def test_defaults(self):
        config = ViewerConfig()
        assert config.page_size == 10
        assert config.live_reload is False
        assert config.reload_interval == 0.5
        assert config.max_data_size == DEFAULT_MAX_DATA_SIZE
        assert config.filter_mode is FilterMode.ALL
        assert config.show_data is True

    def test_from_args(self):
        args = argparse.Namespace(
            page_size=5,
            reload_interval=2.0,
            filter_mode="value",
            live_reload=True,
            ignore_case=True,
            no_data=True,
        )
        config = ViewerConfig.from_args(args)
        assert config.page_size == 5
        assert config.reload_interval == 2.0
        assert config.filter_mode is FilterMode.VALUE
        assert config.live_reload is True
        assert config.ignore_case is True
        assert config.show_data is False

    def test_from_args_missing_options(self):
        config = ViewerConfig.from_args(argparse.Namespace())
        assert config == ViewerConfig()

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            ViewerConfig(page_size=0)
        with pytest.raises(ValueError):
            ViewerConfig.from_args(argparse.Namespace(page_size=-1))
