"""CloudFront CDN provider."""

import logging
from typing import Any, Callable, Optional

from cdn_operator.config import OperatorConfig, get_config
from cdn_operator.errors import CDNError
from cdn_operator.models import Distribution, DistributionClassSpec, DistributionStatus
from cdn_operator.providers.base import CDNProvider, ProviderResult
from cdn_operator.providers.cloudfront.auth import AwsSessionFactory, client_config
from cdn_operator.providers.cloudfront.certificate import CertificateProvider
from cdn_operator.providers.cloudfront.distribution import DistributionProvider
from cdn_operator.providers.cloudfront.state import PROVIDER_NAME, CloudFrontState
from cdn_operator.resolvers import Certificate, DistributionClassResolver, ResolvedOrigin
from cdn_operator.utils.k8s_client import K8sClient

logger = logging.getLogger(__name__)

# (class spec, distribution) -> (cloudfront client, acm client)
ClientFactory = Callable[[DistributionClassSpec, Distribution], tuple[Any, Any]]


class CloudFrontProvider(CDNProvider):
    """
    Deploys Distributions as AWS CloudFront distributions.

    TLS certificates are imported into ACM (always us-east-1) and
    attached to the distribution as its viewer certificate.
    """

    name = PROVIDER_NAME

    def __init__(
        self,
        k8s: Optional[K8sClient] = None,
        settings: Optional[OperatorConfig] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        """
        Initialize the provider.

        Args:
            k8s: Kubernetes client, used to read credentials for the classes
            settings: Operator configuration
            client_factory: Override how AWS clients are built
        """
        self.settings = settings or get_config()
        self.k8s = k8s
        self.client_factory = client_factory or self._aws_clients
        self._sessions: Optional[AwsSessionFactory] = None

    def wants(self, class_spec: DistributionClassSpec) -> bool:
        return class_spec.providers.cloudfront is not None

    def has(self, status: DistributionStatus) -> bool:
        return bool(status.external_id or status.external_certificate_id)

    def _aws_clients(self, class_spec: DistributionClassSpec, distribution: Distribution) -> tuple[Any, Any]:
        """Build CloudFront and ACM clients with the class's credentials."""
        if self._sessions is None:
            self._sessions = AwsSessionFactory(self.k8s or K8sClient(self.settings), self.settings)

        cloudfront = class_spec.providers.cloudfront
        class_namespace = DistributionClassResolver.class_namespace(
            distribution.spec.distribution_class, distribution.metadata.namespace
        )
        session = self._sessions.session(cloudfront.auth if cloudfront else None, class_namespace)
        config = client_config(self.settings)
        return (
            session.client("cloudfront", config=config),
            session.client("acm", region_name=self.settings.acm_region, config=config),
        )

    def reconcile(
        self,
        class_spec: DistributionClassSpec,
        distribution: Distribution,
        origin: ResolvedOrigin,
        certificate: Optional[Certificate],
    ) -> ProviderResult:
        """
        Converge the certificate, then the distribution.

        A certificate failure stops the pass before the distribution is
        touched, as it would reference a certificate that is not there.
        Whatever was achieved before an error is still returned.
        """
        state = CloudFrontState.from_status(distribution.status)
        error: Optional[CDNError] = None

        try:
            cloudfront_client, acm_client = self.client_factory(class_spec, distribution)

            if certificate is not None:
                CertificateProvider(acm_client, state, certificate).reconcile()

            DistributionProvider(
                cloudfront_client,
                state,
                distribution,
                class_spec=class_spec.providers.cloudfront,
                origin=origin,
                use_certificate=certificate is not None,
            ).reconcile()
        except CDNError as e:
            logger.warning(
                f"CloudFront reconcile of {distribution.metadata.namespace}/"
                f"{distribution.metadata.name} failed: {e}"
            )
            error = e

        return ProviderResult(delta=state.to_delta(ready=error is None and state.deployed), error=error)

    def delete(self, class_spec: DistributionClassSpec, distribution: Distribution) -> ProviderResult:
        """
        Tear down the distribution, then the certificate once the distribution is gone.

        Disabling and deleting a distribution spans several passes; the
        certificate is only deleted after the distribution id is cleared,
        as CloudFront refuses to release a certificate still in use.
        """
        state = CloudFrontState.from_status(distribution.status)
        error: Optional[CDNError] = None

        try:
            cloudfront_client, acm_client = self.client_factory(class_spec, distribution)

            if state.distribution_id:
                DistributionProvider(cloudfront_client, state, distribution).delete()

            if not state.distribution_id and state.certificate_arn:
                CertificateProvider(acm_client, state).delete()
        except CDNError as e:
            logger.warning(
                f"CloudFront delete of {distribution.metadata.namespace}/"
                f"{distribution.metadata.name} failed: {e}"
            )
            error = e

        return ProviderResult(delta=state.to_delta(ready=False), error=error)
