"""Resolves a Distribution's origin into a concrete host and ports."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from cdn_operator.errors import ResolutionError, ValidationError
from cdn_operator.models import Distribution, ReferenceKind, ServicePort
from cdn_operator.utils.k8s_client import K8sClient

logger = logging.getLogger(__name__)

DEFAULT_HTTP_PORT = 80
DEFAULT_HTTPS_PORT = 443


@dataclass(frozen=True)
class ResolvedOrigin:
    """Fully specified origin handed to the CDN providers."""

    host: str
    http_port: int
    https_port: int


def load_balancer_host(ingress: Optional[list[Any]]) -> Optional[str]:
    """
    Pick the origin host from a load balancer ingress list.

    Only the first entry is used; its hostname is preferred over its IP.
    """
    if not ingress:
        return None
    first = ingress[0]
    return first.hostname or first.ip or None


class OriginResolver:
    """
    Derives a ResolvedOrigin from a Distribution.

    Explicit values on the spec win; anything missing is discovered
    from the target Service or Ingress; ports fall back to 80/443.
    """

    def __init__(self, k8s: K8sClient):
        self.k8s = k8s

    def resolve(self, distribution: Distribution) -> ResolvedOrigin:
        """
        Resolve the origin of a Distribution.

        Args:
            distribution: The Distribution being reconciled

        Returns:
            The resolved origin

        Raises:
            ValidationError: If the target kind is neither Service nor Ingress
            ResolutionError: If no origin host can be determined
        """
        origin = distribution.spec.origin
        host = origin.host or None
        http_port = _explicit_port(origin.http_port)
        https_port = _explicit_port(origin.https_port)

        named = (not http_port and _port_name(origin.http_port)) or (
            not https_port and _port_name(origin.https_port)
        )
        if (not host or named) and origin.target is not None:
            namespace = distribution.metadata.namespace
            target = origin.target
            if target.kind == ReferenceKind.SERVICE.value:
                service = self.k8s.get_service(namespace, target.name)
                if service is None:
                    logger.warning(f"Origin service {namespace}/{target.name} not found")
                else:
                    host = host or load_balancer_host(_lb_ingress(service))
                    ports = service.spec.ports if service.spec else None
                    http_port = http_port or _named_port(ports, origin.http_port)
                    https_port = https_port or _named_port(ports, origin.https_port)
            elif target.kind == ReferenceKind.INGRESS.value:
                ingress = self.k8s.get_ingress(namespace, target.name)
                if ingress is None:
                    logger.warning(f"Origin ingress {namespace}/{target.name} not found")
                else:
                    host = host or load_balancer_host(_lb_ingress(ingress))
            else:
                raise ValidationError(
                    f"Origin target kind {target.kind!r} is not supported, "
                    "expecting Service or Ingress"
                )

        if not host:
            raise ResolutionError("origin host could not be determined, please provide one")

        return ResolvedOrigin(
            host=host,
            http_port=http_port or DEFAULT_HTTP_PORT,
            https_port=https_port or DEFAULT_HTTPS_PORT,
        )


def _explicit_port(port: Optional[ServicePort]) -> Optional[int]:
    return port.number if port is not None and port.number else None


def _port_name(port: Optional[ServicePort]) -> Optional[str]:
    return port.name if port is not None and port.name else None


def _named_port(ports: Optional[list[Any]], wanted: Optional[ServicePort]) -> Optional[int]:
    """Find the number of the service port named like the requested port."""
    if wanted is None or not wanted.name:
        return None
    for port in ports or []:
        if port.name == wanted.name:
            return port.port
    return None


def _lb_ingress(obj: Any) -> Optional[list[Any]]:
    status = obj.status
    if status is None or status.load_balancer is None:
        return None
    return status.load_balancer.ingress
