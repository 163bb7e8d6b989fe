"""
================================================================================
AniSync v1.0 - Configuration
================================================================================
Settings for matching thresholds, request pacing and crawling.

SOURCES (later wins):
  1. Built-in defaults
  2. JSON file named by ANISYNC_CONFIG (nested mapping/provider/crawl options)
  3. Environment variables (a .env file is loaded by the package on import)

JSON FILE FORMAT:
    {
      "mapping": {
        "threshold": 0.8,
        "comparison_threshold": 0.5,
        "wait_ms": 200,
        "providers": {
          "MangaDex": {"threshold": 0.7, "wait_ms": 500, "timeout": 20}
        }
      },
      "crawl": {"max_pages": 5, "wait_ms": 1000, "max_ids": null}
    }

ENVIRONMENT:
    ANISYNC_THRESHOLD, ANISYNC_COMPARISON_THRESHOLD, ANISYNC_WAIT_MS,
    ANISYNC_CRAWL_MAX_PAGES, ANISYNC_CRAWL_WAIT_MS, ANISYNC_CRAWL_MAX_IDS,
    DATABASE_URL, REDIS_URL, ANISYNC_DEBUG
================================================================================
"""

import os
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Per-provider overrides. None means use the global value."""
    threshold: Optional[float] = None
    comparison_threshold: Optional[float] = None
    wait_ms: Optional[int] = None
    timeout: Optional[float] = None  # Seconds; None = no fan-out timeout

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
        return cls(
            threshold=_opt_float(data.get('threshold')),
            comparison_threshold=_opt_float(data.get('comparison_threshold')),
            wait_ms=_opt_int(data.get('wait_ms')),
            timeout=_opt_float(data.get('timeout')),
        )


@dataclass
class MappingSettings:
    """Global matching thresholds and request pacing."""
    threshold: float = 0.8
    comparison_threshold: float = 0.5
    wait_ms: int = 200
    providers: Dict[str, ProviderConfig] = field(default_factory=dict)

    def for_provider(
        self,
        provider_name: str,
        override: Optional[ProviderConfig] = None
    ) -> ProviderConfig:
        """
        Resolve the effective config of one provider.

        Precedence per field: `override` (usually the adapter's own config),
        then the configured per-provider entry, then the globals.
        """
        layers = [c for c in (override, self.providers.get(provider_name)) if c is not None]

        def pick(attr: str, default: Any) -> Any:
            for layer in layers:
                value = getattr(layer, attr)
                if value is not None:
                    return value
            return default

        return ProviderConfig(
            threshold=pick('threshold', self.threshold),
            comparison_threshold=pick('comparison_threshold', self.comparison_threshold),
            wait_ms=pick('wait_ms', self.wait_ms),
            timeout=pick('timeout', None),
        )


@dataclass
class CrawlSettings:
    """Crawl pacing."""
    max_pages: int = 5
    wait_ms: int = 1000
    max_ids: Optional[int] = None


@dataclass
class Settings:
    mapping: MappingSettings = field(default_factory=MappingSettings)
    crawl: CrawlSettings = field(default_factory=CrawlSettings)
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    debug: bool = False


def _opt_float(value: Any) -> Optional[float]:
    return None if value is None or value == '' else float(value)


def _opt_int(value: Any) -> Optional[int]:
    return None if value is None or value == '' else int(value)


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes', 'on')


def _load_file(path: str) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Build Settings from defaults, the optional JSON file and the environment.

    Args:
        config_path: JSON config path (defaults to $ANISYNC_CONFIG)

    Returns:
        Settings instance
    """
    settings = Settings()

    config_path = config_path or os.environ.get('ANISYNC_CONFIG')
    if config_path:
        if os.path.exists(config_path):
            data = _load_file(config_path)
            mapping = data.get('mapping', {})
            crawl = data.get('crawl', {})

            if 'threshold' in mapping:
                settings.mapping.threshold = float(mapping['threshold'])
            if 'comparison_threshold' in mapping:
                settings.mapping.comparison_threshold = float(mapping['comparison_threshold'])
            if 'wait_ms' in mapping:
                settings.mapping.wait_ms = int(mapping['wait_ms'])
            settings.mapping.providers = {
                name: ProviderConfig.from_dict(cfg or {})
                for name, cfg in (mapping.get('providers') or {}).items()
            }

            if 'max_pages' in crawl:
                settings.crawl.max_pages = int(crawl['max_pages'])
            if 'wait_ms' in crawl:
                settings.crawl.wait_ms = int(crawl['wait_ms'])
            if 'max_ids' in crawl:
                settings.crawl.max_ids = _opt_int(crawl['max_ids'])

            logger.info(f"Loaded config file: {config_path}")
        else:
            logger.warning(f"Config file not found: {config_path} (using defaults)")

    env = os.environ
    if env.get('ANISYNC_THRESHOLD'):
        settings.mapping.threshold = float(env['ANISYNC_THRESHOLD'])
    if env.get('ANISYNC_COMPARISON_THRESHOLD'):
        settings.mapping.comparison_threshold = float(env['ANISYNC_COMPARISON_THRESHOLD'])
    if env.get('ANISYNC_WAIT_MS'):
        settings.mapping.wait_ms = int(env['ANISYNC_WAIT_MS'])
    if env.get('ANISYNC_CRAWL_MAX_PAGES'):
        settings.crawl.max_pages = int(env['ANISYNC_CRAWL_MAX_PAGES'])
    if env.get('ANISYNC_CRAWL_WAIT_MS'):
        settings.crawl.wait_ms = int(env['ANISYNC_CRAWL_WAIT_MS'])
    if env.get('ANISYNC_CRAWL_MAX_IDS'):
        settings.crawl.max_ids = int(env['ANISYNC_CRAWL_MAX_IDS'])

    settings.database_url = env.get('DATABASE_URL') or None
    settings.redis_url = env.get('REDIS_URL') or None
    settings.debug = _env_flag('ANISYNC_DEBUG')

    return settings


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings (loaded on first access)."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
