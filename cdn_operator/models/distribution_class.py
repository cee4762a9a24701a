"""DistributionClass and ClusterDistributionClass Custom Resource Definition models."""

from typing import Any, Optional

from pydantic import Field, field_validator

from cdn_operator.models.distribution import ResourceModel


class NamespacedName(ResourceModel):
    """Reference to an object, possibly in another namespace."""

    name: str = Field(description="Object name")
    namespace: Optional[str] = Field(
        default=None, description="Required when referenced from a cluster-scoped class"
    )


class AwsJwtAuth(ResourceModel):
    """Web identity federation through a Kubernetes ServiceAccount token."""

    service_account: NamespacedName = Field(alias="serviceAccount")
    sts_audience: str = Field(default="sts.amazonaws.com", alias="stsAudience")
    annotation_name: str = Field(
        default="eks.amazonaws.com/role-arn",
        alias="annotationName",
        description="ServiceAccount annotation holding the role ARN",
    )


class AwsAuth(ResourceModel):
    """How to obtain AWS credentials for a class."""

    role: Optional[str] = Field(default=None, description="Role ARN to assume")
    access_key_secret: Optional[NamespacedName] = Field(
        default=None,
        alias="accessKeySecret",
        description="Secret with AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY",
    )
    jwt: Optional[AwsJwtAuth] = Field(default=None)


class CloudFrontSpec(ResourceModel):
    """
    CloudFront provider settings.

    The presence of this block on a class is what makes its Distributions
    deploy to CloudFront.
    """

    auth: Optional[AwsAuth] = Field(default=None)
    ssl_mode: str = Field(
        default="sni-only", alias="sslMode", description="SSL support method (sni-only, vip, static-ip)"
    )
    cache_policy_id: Optional[str] = Field(default=None, alias="cachePolicyId")
    origin_request_policy_id: Optional[str] = Field(default=None, alias="originRequestPolicyId")
    supported_methods: list[str] = Field(default_factory=list, alias="supportedMethods")

    @field_validator("ssl_mode")
    @classmethod
    def validate_ssl_mode(cls, v: str) -> str:
        """Validate SSL mode is one of the allowed values."""
        allowed = ["sni-only", "vip", "static-ip"]
        if v not in allowed:
            raise ValueError(f"sslMode must be one of {allowed}")
        return v

    @field_validator("cache_policy_id", "origin_request_policy_id")
    @classmethod
    def empty_as_unset(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty policy ids as unset."""
        return v or None

    @field_validator("supported_methods")
    @classmethod
    def normalise_methods(cls, v: list[str]) -> list[str]:
        """Upper-case HTTP method names."""
        return [method.upper() for method in v]


class ProviderList(ResourceModel):
    """Per-provider settings; one block per CDN back-end."""

    cloudfront: Optional[CloudFrontSpec] = Field(default=None)


class DistributionClassSpec(ResourceModel):
    """
    (Cluster)DistributionClass Custom Resource Specification.

    Reusable provider configuration referenced by Distributions.
    """

    providers: ProviderList = Field(default_factory=ProviderList)

    @classmethod
    def from_resource(cls, body: dict[str, Any]) -> "DistributionClassSpec":
        """Build from the raw object returned by the Kubernetes API."""
        return cls.model_validate(body.get("spec") or {})
