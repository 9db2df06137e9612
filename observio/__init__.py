"""Observio: query-builder and log browsing API over ClickHouse."""

__version__ = "0.1.0"
