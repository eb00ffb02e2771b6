"""Loaders for the clinic knowledge base."""

from .base import BaseLoader, LoaderConfig, LoadResult
from .mappings import MappingLoader
from .natural_key import NaturalKeyLoader, RemedyLoader, RubricLoader

__all__ = [
    "BaseLoader",
    "LoadResult",
    "LoaderConfig",
    "MappingLoader",
    "NaturalKeyLoader",
    "RemedyLoader",
    "RubricLoader",
]
