"""CDN providers."""

from typing import Optional

from cdn_operator.config import OperatorConfig
from cdn_operator.providers.base import CDNProvider, ProviderResult
from cdn_operator.providers.cloudfront import CloudFrontProvider
from cdn_operator.utils.k8s_client import K8sClient


def default_providers(
    k8s: Optional[K8sClient] = None, settings: Optional[OperatorConfig] = None
) -> list[CDNProvider]:
    """
    Every CDN back-end the operator can deploy to.

    A new back-end is added by implementing CDNProvider and listing it here.
    """
    return [CloudFrontProvider(k8s=k8s, settings=settings)]


__all__ = ["CDNProvider", "CloudFrontProvider", "ProviderResult", "default_providers"]
