"""Hackathon ingestion pipeline: scrape, normalize, deduplicate, store."""

__version__ = "0.1.0"
