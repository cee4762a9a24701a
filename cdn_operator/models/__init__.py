"""Pydantic models for CDN custom resources."""

from cdn_operator.models.distribution import (
    Distribution,
    DistributionSpec,
    DistributionStatus,
    Endpoint,
    ObjectReference,
    Origin,
    ReferenceKind,
    ServicePort,
    StatusDelta,
    TLSSpec,
)
from cdn_operator.models.distribution_class import (
    AwsAuth,
    AwsJwtAuth,
    CloudFrontSpec,
    DistributionClassSpec,
    NamespacedName,
    ProviderList,
)

__all__ = [
    "Distribution",
    "DistributionSpec",
    "DistributionStatus",
    "Endpoint",
    "ObjectReference",
    "Origin",
    "ReferenceKind",
    "ServicePort",
    "StatusDelta",
    "TLSSpec",
    "AwsAuth",
    "AwsJwtAuth",
    "CloudFrontSpec",
    "DistributionClassSpec",
    "NamespacedName",
    "ProviderList",
]
