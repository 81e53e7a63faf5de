"""Scraper utilities for fetching, rate limiting, robots rules and normalization."""

from .rate_limiter import RequestLimiter
from .retry import http_retrying, RETRYABLE_EXCEPTIONS
from .robots import RobotsRules
from .fetcher import Fetcher, FetcherConfig
from .normalizer import (
    DateRange,
    ONLINE_KEYWORDS,
    absolute_url,
    canonicalize_url,
    classify_location,
    clean_text,
    ensure_utc,
    parse_date_range,
    parse_timestamp,
    placeholder_window,
    strip_html,
)


__all__ = [
    # Fetching
    "Fetcher",
    "FetcherConfig",
    "RequestLimiter",
    "RobotsRules",
    "http_retrying",
    "RETRYABLE_EXCEPTIONS",
    # Normalization
    "DateRange",
    "ONLINE_KEYWORDS",
    "absolute_url",
    "canonicalize_url",
    "classify_location",
    "clean_text",
    "ensure_utc",
    "parse_date_range",
    "parse_timestamp",
    "placeholder_window",
    "strip_html",
]
