"""Ingestion layer.

This package contains adapters that receive ESPresense reports and emit
normalized report events for the controller.
"""

__all__: list[str] = []
