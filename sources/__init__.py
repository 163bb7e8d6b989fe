"""
================================================================================
AniSync v1.0 - Provider Registry
================================================================================
The explicit list of provider adapters the mapper searches.

The registry is a plain tuple built once at startup: no directory scanning,
no runtime registration. Adding a provider means adding its class to
PROVIDER_CLASSES.

Usage:
    providers = build_providers(get_settings())
    manga_providers = providers_for(providers, MediaType.MANGA)
================================================================================
"""

from typing import Optional, Sequence, Tuple, Type

import httpx

from anisync_app.config import Settings
from anisync_app.mapping.models import MediaType
from .base import ProviderAdapter
from .comick import ComickProvider
from .enime import EnimeProvider
from .mangadex import MangaDexProvider
from .mangakakalot import MangakakalotProvider

PROVIDER_CLASSES: Tuple[Type[ProviderAdapter], ...] = (
    EnimeProvider,
    MangaDexProvider,
    ComickProvider,
    MangakakalotProvider,
)


def build_providers(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> Tuple[ProviderAdapter, ...]:
    """
    Instantiate every provider with its effective config.

    Args:
        settings: Loaded settings (per-provider overrides merged with globals)
        transport: Optional httpx transport shared by all adapters

    Returns:
        Immutable tuple of adapters, in registry order
    """
    return tuple(
        cls(config=settings.mapping.for_provider(cls.id), transport=transport)
        for cls in PROVIDER_CLASSES
    )


def providers_for(
    providers: Sequence[ProviderAdapter],
    media_type: MediaType
) -> Tuple[ProviderAdapter, ...]:
    """Providers covering one media type, in registry order."""
    return tuple(p for p in providers if p.media_type == media_type)


__all__ = [
    'ProviderAdapter',
    'EnimeProvider',
    'MangaDexProvider',
    'ComickProvider',
    'MangakakalotProvider',
    'PROVIDER_CLASSES',
    'build_providers',
    'providers_for',
]
