"""Provider-local working state of the CloudFront provider."""

from dataclasses import dataclass
from typing import Any, Optional

from cdn_operator.models import DistributionStatus, Endpoint, StatusDelta

PROVIDER_NAME = "cloudfront"


@dataclass
class CloudFrontState:
    """
    What the CloudFront provider knows about its external objects.

    Seeded from the Distribution's persisted status, updated by the
    sub-providers as they talk to AWS, then handed back as a StatusDelta.
    """

    distribution_id: str = ""
    certificate_arn: str = ""
    status: str = ""
    domain_name: Optional[str] = None

    @classmethod
    def from_status(cls, status: DistributionStatus) -> "CloudFrontState":
        endpoint = next((e for e in status.endpoints if e.provider == PROVIDER_NAME), None)
        return cls(
            distribution_id=status.external_id,
            certificate_arn=status.external_certificate_id,
            status=status.external_status,
            domain_name=endpoint.host if endpoint else None,
        )

    def observe(self, distribution: dict[str, Any]) -> None:
        """Record a Distribution object returned by the CloudFront API."""
        self.distribution_id = distribution["Id"]
        self.status = distribution["Status"]
        self.domain_name = distribution["DomainName"]

    def forget_distribution(self) -> None:
        """The distribution is gone: drop its id and endpoint."""
        self.distribution_id = ""
        self.status = ""
        self.domain_name = None

    @property
    def deployed(self) -> bool:
        return self.status == "Deployed"

    def to_delta(self, ready: bool) -> StatusDelta:
        endpoint = None
        if self.domain_name:
            endpoint = Endpoint(provider=PROVIDER_NAME, host=self.domain_name)
        return StatusDelta(
            provider=PROVIDER_NAME,
            external_id=self.distribution_id,
            external_certificate_id=self.certificate_arn,
            external_status=self.status,
            endpoint=endpoint,
            ready=ready,
        )
