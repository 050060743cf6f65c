"""Configuration snapshot: parsing, extraction and caching."""
from .cache import CacheEntry, SnapshotCache
from .parser import ConfigFileParser, ParsedCommand, ParsedConfig, ParsedContext, parse_config
from .resolver import ConfigPathResolver, parse_config_path

__all__ = [
    "CacheEntry",
    "ConfigFileParser",
    "ConfigPathResolver",
    "ParsedCommand",
    "ParsedConfig",
    "ParsedContext",
    "SnapshotCache",
    "parse_config",
    "parse_config_path",
]
