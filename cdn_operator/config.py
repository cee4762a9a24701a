"""Operator configuration and shared constants."""

from datetime import timedelta
from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "CDN_OPERATOR_"


class OperatorConfig(BaseSettings):
    """
    Process-wide operator settings.

    Holds the API coordinates of the custom resources, the finalizer and
    annotation keys, and the tunables of the reconcile loop and the AWS
    clients. Every field can be overridden with a ``CDN_OPERATOR_<FIELD>``
    environment variable.
    """

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, frozen=True, extra="ignore")

    # Custom resource coordinates
    api_group: str = Field(default="cdn.dev", description="API group of the CRDs")
    api_version: str = Field(default="v1alpha1", description="API version of the CRDs")
    distribution_plural: str = Field(default="distributions")
    distribution_class_plural: str = Field(default="distributionclasses")
    cluster_distribution_class_plural: str = Field(default="clusterdistributionclasses")

    # Metadata keys
    finalizer: str = Field(
        default="cdn.dev/finalizer",
        description="Finalizer gating deletion until providers are cleaned up",
    )
    reconcile_trigger_annotation: str = Field(
        default="cdn.dev/reconcile-trigger",
        description="Annotation touched when a referenced object changes",
    )

    # Reconcile loop
    recheck_interval_seconds: int = Field(
        default=60, ge=1, description="Recheck delay for resources not yet converged"
    )
    max_requeue_delay_seconds: int = Field(
        default=300, ge=1, description="Cap for the backoff of immediate requeues"
    )
    max_workers: int = Field(default=4, ge=1, description="kopf sync handler workers")

    # Observability
    metrics_port: int = Field(default=8080, ge=0, le=65535)
    liveness_port: int = Field(default=8081, ge=0, le=65535)
    log_level: str = Field(default="INFO")

    # AWS
    aws_session_name: str = Field(default="cdn-operator")
    acm_region: str = Field(
        default="us-east-1", description="CloudFront only accepts ACM certs from us-east-1"
    )
    aws_connect_timeout: int = Field(default=10, ge=1)
    aws_read_timeout: int = Field(default=60, ge=1)
    aws_max_attempts: int = Field(default=5, ge=1)

    @property
    def recheck_interval(self) -> timedelta:
        """Delay before a not-yet-converged resource is checked again."""
        return timedelta(seconds=self.recheck_interval_seconds)


@lru_cache(maxsize=1)
def get_config() -> OperatorConfig:
    """Get the process-wide configuration."""
    return OperatorConfig()
