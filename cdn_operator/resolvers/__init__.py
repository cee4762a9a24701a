"""Resolvers turning Distribution references into concrete inputs."""

from cdn_operator.resolvers.certificate import Certificate, CertificateResolver
from cdn_operator.resolvers.distribution_class import DistributionClassResolver
from cdn_operator.resolvers.origin import OriginResolver, ResolvedOrigin

__all__ = [
    "Certificate",
    "CertificateResolver",
    "DistributionClassResolver",
    "OriginResolver",
    "ResolvedOrigin",
]
