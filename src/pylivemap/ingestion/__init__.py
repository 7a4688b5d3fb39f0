"""Ingestion layer.

This package contains adapters that turn raw push frames and region-service
payloads into typed models, dropping malformed records at the boundary.
"""

__all__: list[str] = []
