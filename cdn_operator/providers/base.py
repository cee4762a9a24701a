"""CDN provider capability contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from cdn_operator.errors import CDNError
from cdn_operator.models import Distribution, DistributionClassSpec, DistributionStatus, StatusDelta
from cdn_operator.resolvers import Certificate, ResolvedOrigin


@dataclass
class ProviderResult:
    """Outcome of one provider operation: its status contribution and any error."""

    delta: StatusDelta
    error: Optional[CDNError] = None


class CDNProvider(ABC):
    """
    A CDN back-end the reconciler can deploy Distributions to.

    Providers never mutate the Distribution they are given. Everything
    they learn is handed back as a StatusDelta inside a ProviderResult,
    even when the operation fails part way through.
    """

    name: str = ""

    @abstractmethod
    def wants(self, class_spec: DistributionClassSpec) -> bool:
        """Whether the class asks for this provider."""

    @abstractmethod
    def has(self, status: DistributionStatus) -> bool:
        """Whether the status records external state owned by this provider."""

    @abstractmethod
    def reconcile(
        self,
        class_spec: DistributionClassSpec,
        distribution: Distribution,
        origin: ResolvedOrigin,
        certificate: Optional[Certificate],
    ) -> ProviderResult:
        """
        Converge the external distribution towards the Distribution's spec.

        Args:
            class_spec: Resolved (Cluster)DistributionClass spec
            distribution: The Distribution, with its last persisted status
            origin: Resolved origin
            certificate: Parsed TLS certificate, if the Distribution has TLS

        Returns:
            The provider's status delta and the error that stopped it, if any
        """

    @abstractmethod
    def delete(
        self, class_spec: DistributionClassSpec, distribution: Distribution
    ) -> ProviderResult:
        """
        Advance the cleanup of external state.

        Deletion may take several passes; the returned delta tells the
        reconciler (through ``has``) whether anything is left.
        """
