"""Utility functions and helpers for the CDN operator."""

from cdn_operator.utils.k8s_client import K8sClient
from cdn_operator.utils.validators import validate_hostname, validate_resource_name

__all__ = ["K8sClient", "validate_hostname", "validate_resource_name"]
