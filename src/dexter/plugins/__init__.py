"""Tool plugins and the catalog the router chooses from."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from dexter.plugins.base import (
    BasePlugin,
    DiffItem,
    DiffPreview,
    ExecutionFailure,
    LlmBridge,
    Plugin,
    Preview,
    Progress,
    ProgressSender,
    TextPreview,
)
from dexter.plugins.f2 import F2Plugin
from dexter.plugins.ffmpeg import FfmpegPlugin
from dexter.plugins.libvips import LibvipsPlugin
from dexter.plugins.ytdlp import YtDlpPlugin


class PluginCatalog:
    """Ordered, name-indexed plugin collection; the order is the router's listing order."""

    def __init__(self, plugins: Iterable[Plugin]) -> None:
        self._plugins: tuple[Plugin, ...] = tuple(plugins)
        self._by_name: dict[str, Plugin] = {}
        for plugin in self._plugins:
            if plugin.name in self._by_name:
                raise ValueError(f"duplicate plugin name: {plugin.name}")
            self._by_name[plugin.name] = plugin

    def get(self, name: str) -> Plugin | None:
        return self._by_name.get(name)

    def names(self) -> tuple[str, ...]:
        return tuple(plugin.name for plugin in self._plugins)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[Plugin]:
        return iter(self._plugins)

    def __len__(self) -> int:
        return len(self._plugins)


def default_catalog() -> PluginCatalog:
    return PluginCatalog((FfmpegPlugin(), F2Plugin(), YtDlpPlugin(), LibvipsPlugin()))


__all__ = [
    "BasePlugin",
    "DiffItem",
    "DiffPreview",
    "ExecutionFailure",
    "F2Plugin",
    "FfmpegPlugin",
    "LibvipsPlugin",
    "LlmBridge",
    "Plugin",
    "PluginCatalog",
    "Preview",
    "Progress",
    "ProgressSender",
    "TextPreview",
    "YtDlpPlugin",
    "default_catalog",
]
