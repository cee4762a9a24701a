"""
CDN Operator - Kubernetes operator for CDN distributions

Reconciles Distribution custom resources into CDN distributions (AWS
CloudFront), importing TLS certificates and keeping the remote
configuration in line with the resource's spec.

This operator uses Kopf (Kubernetes Operator Pythonic Framework) to watch
Distributions and the classes, secrets, services and ingresses they
reference.
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

from cdn_operator.models.distribution import Distribution, DistributionSpec, DistributionStatus
from cdn_operator.models.distribution_class import DistributionClassSpec

__all__ = [
    "Distribution",
    "DistributionSpec",
    "DistributionStatus",
    "DistributionClassSpec",
]
