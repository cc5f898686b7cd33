"""Viewer configuration."""

from __future__ import annotations

import argparse
from dataclasses import dataclass

from vtree.filter import FilterMode

DEFAULT_MAX_DATA_SIZE = 30 * 1024 * 1024


@dataclass
class ViewerConfig:
    page_size: int = 10
    live_reload: bool = False
    reload_interval: float = 0.5
    max_data_size: int = DEFAULT_MAX_DATA_SIZE
    filter_mode: FilterMode = FilterMode.ALL
    ignore_case: bool = False
    show_data: bool = True

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError(f"page size must be positive: {self.page_size}")
        if self.reload_interval <= 0:
            raise ValueError(f"reload interval must be positive: {self.reload_interval}")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> ViewerConfig:
        """Build a config from parsed CLI options; missing options keep defaults."""
        config = cls()
        page_size = getattr(args, "page_size", None)
        if page_size is not None:
            config.page_size = page_size
        interval = getattr(args, "reload_interval", None)
        if interval is not None:
            config.reload_interval = interval
        mode = getattr(args, "filter_mode", None)
        if mode is not None:
            config.filter_mode = FilterMode(mode)
        config.live_reload = bool(getattr(args, "live_reload", False))
        config.ignore_case = bool(getattr(args, "ignore_case", False))
        config.show_data = not getattr(args, "no_data", False)
        config.__post_init__()
        return config
