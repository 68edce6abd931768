"""Core business logic for the link shortener."""

from .keygen import KeyGenerator
from .normalizer import clean_url
from .service import LinkStore
from .resolver import RedirectResolver, RedirectOutcome, merge_query_params

__all__ = [
    "KeyGenerator",
    "clean_url",
    "LinkStore",
    "RedirectResolver",
    "RedirectOutcome",
    "merge_query_params",
]
