"""
Scraper package initialization and registry construction.

This module imports every module in the package (so each scraper class is
defined) and then builds a registry mapping each `ContentType` to the
concrete `ContentScraper` subclass that crawls it.

The registry is what the orchestrator consults for each content type.
"""

from __future__ import annotations

import importlib
import pkgutil
from typing import Dict, Iterator, Type

from utils.schema import ContentType

from .base import ContentScraper

# Discover and import all modules in this package so subclasses register.
for loader, name, is_pkg in pkgutil.walk_packages(__path__):
    importlib.import_module(f"{__name__}.{name}")


def _all_subclasses(cls: Type[ContentScraper]) -> Iterator[Type[ContentScraper]]:
    for sub in cls.__subclasses__():
        yield sub
        yield from _all_subclasses(sub)


#: Mapping from content type to the scraper class that handles it.
SCRAPER_REGISTRY: Dict[ContentType, Type[ContentScraper]] = {
    cls.content_type: cls
    for cls in _all_subclasses(ContentScraper)
    if cls.content_type is not None
}

__all__ = ["SCRAPER_REGISTRY", "ContentScraper"]
