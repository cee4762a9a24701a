"""CloudFront distribution sub-provider."""

import logging
from typing import Any, Optional

import pydantic

from cdn_operator.errors import ConflictError, NotFoundError
from cdn_operator.models import Distribution
from cdn_operator.models.distribution_class import CloudFrontSpec
from cdn_operator.providers.cloudfront.config import DistributionConfig, generate_distribution_config
from cdn_operator.providers.cloudfront.errors import (
    AWS_ERRORS,
    error_message,
    extract_distribution_id,
    translate_error,
)
from cdn_operator.providers.cloudfront.state import CloudFrontState
from cdn_operator.resolvers import ResolvedOrigin

logger = logging.getLogger(__name__)


class DistributionProvider:
    """
    Creates, updates and tears down the CloudFront distribution.

    Every successful call records the distribution's id, deployment
    status and domain name in the working state.
    """

    def __init__(
        self,
        client: Any,
        state: CloudFrontState,
        distribution: Distribution,
        class_spec: Optional[CloudFrontSpec] = None,
        origin: Optional[ResolvedOrigin] = None,
        use_certificate: bool = False,
    ):
        self.client = client
        self.state = state
        self.distribution = distribution
        self.class_spec = class_spec
        self.origin = origin
        self.use_certificate = use_certificate

    def desired_state(self) -> DistributionConfig:
        """The config this distribution should have right now."""
        return generate_distribution_config(
            self.distribution,
            self.class_spec,
            self.origin,
            certificate_arn=self.state.certificate_arn if self.use_certificate else "",
        )

    def load(self) -> Optional[tuple[dict[str, Any], str]]:
        """
        Fetch the live distribution.

        Returns:
            The distribution and its ETag, or None when it no longer
            exists (its id and endpoint are then dropped)

        Raises:
            ProviderError: If the call fails for any other reason
        """
        distribution_id = self.state.distribution_id
        try:
            response = self.client.get_distribution(Id=distribution_id)
        except AWS_ERRORS as e:
            error = translate_error(e, f"GetDistribution {distribution_id}")
            if not isinstance(error, NotFoundError):
                raise error from e
            logger.info(f"Distribution {distribution_id} no longer exists")
            self.state.forget_distribution()
            return None

        self.state.observe(response["Distribution"])
        return response["Distribution"], response["ETag"]

    def reconcile(self) -> None:
        """
        Create the distribution, or bring an existing one up to date.

        Raises:
            ProviderError: If a CloudFront call fails
        """
        if self.state.distribution_id:
            self.check()
        else:
            self.create()

    def check(self) -> None:
        """Update the distribution if its live config has drifted from the desired one."""
        loaded = self.load()
        if loaded is None:
            self.create()
            return

        live, etag = loaded
        desired = self.desired_state()
        try:
            if desired.matches(DistributionConfig.from_api(live["DistributionConfig"])):
                return
        except pydantic.ValidationError as e:
            logger.info(f"Distribution {live['Id']} has an unrecognised config, replacing it: {e}")

        logger.info(f"Distribution {live['Id']} has drifted, updating")
        self.update(desired.to_api(), etag)

    def create(self) -> None:
        """
        Create the distribution with the Distribution's UID as caller reference.

        Raises:
            ConflictError: If a distribution with the same caller reference
                already exists; its id is salvaged into the state first
        """
        try:
            response = self.client.create_distribution(
                DistributionConfig=self.desired_state().to_api()
            )
        except AWS_ERRORS as e:
            error = translate_error(e, "CreateDistribution")
            if isinstance(error, ConflictError):
                # The caller reference is our UID: the distribution is ours
                # and its id was lost, adopt it and look again next pass
                existing = extract_distribution_id(error_message(e))
                if existing:
                    logger.warning(f"Adopting existing distribution {existing}")
                    self.state.distribution_id = existing
                    self.state.status = "Unknown"
            raise error from e

        self.state.observe(response["Distribution"])
        logger.info(f"Created distribution {self.state.distribution_id}")

    def update(self, config: dict[str, Any], etag: str) -> None:
        distribution_id = self.state.distribution_id
        try:
            response = self.client.update_distribution(
                DistributionConfig=config, Id=distribution_id, IfMatch=etag
            )
        except AWS_ERRORS as e:
            raise translate_error(e, f"UpdateDistribution {distribution_id}") from e
        self.state.observe(response["Distribution"])

    def delete(self) -> None:
        """
        Advance deletion by one step.

        An enabled distribution is disabled first; CloudFront only deletes
        disabled distributions that have finished deploying. The id is
        dropped once the distribution is gone.

        Raises:
            ProviderError: If a CloudFront call fails
        """
        loaded = self.load()
        if loaded is None:
            return

        live, etag = loaded
        live_config = live["DistributionConfig"]
        if live_config.get("Enabled"):
            logger.info(f"Disabling distribution {live['Id']}")
            self.update({**live_config, "Enabled": False}, etag)
            return

        if live["Status"] == "InProgress":
            logger.info(f"Distribution {live['Id']} is still deploying, waiting to delete")
            return

        try:
            self.client.delete_distribution(Id=live["Id"], IfMatch=etag)
        except AWS_ERRORS as e:
            raise translate_error(e, f"DeleteDistribution {live['Id']}") from e

        logger.info(f"Deleted distribution {live['Id']}")
        self.state.forget_distribution()
