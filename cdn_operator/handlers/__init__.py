"""Kopf event handlers for CDN custom resources."""

from cdn_operator.handlers.distribution_handler import (
    delete_distribution,
    distribution_references,
    reconcile_distribution,
)

__all__ = [
    "delete_distribution",
    "distribution_references",
    "reconcile_distribution",
]
