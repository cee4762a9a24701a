"""Desired CloudFront DistributionConfig generation."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_pascal

from cdn_operator.models import Distribution, TLSSpec
from cdn_operator.models.distribution_class import CloudFrontSpec
from cdn_operator.resolvers import ResolvedOrigin

COMMENT = "Managed by cdn-operator"

BASE_METHODS = ["HEAD", "GET"]
ALL_METHODS = ["HEAD", "GET", "OPTIONS", "POST", "PUT", "DELETE"]
CACHEABLE_METHODS = ["HEAD", "GET", "OPTIONS"]
UNCACHEABLE_METHODS = {"POST", "PUT", "DELETE"}

# CloudFront's own defaults for distributions without a cache policy
DEFAULT_MIN_TTL = 0
DEFAULT_DEFAULT_TTL = 86400
DEFAULT_MAX_TTL = 31536000


class ApiRecord(BaseModel):
    """
    Immutable record mirroring part of the CloudFront API shape.

    Fields are named in snake_case and aliased to the API's PascalCase.
    Unknown fields are dropped on parse, so a live config projected onto
    a record only ever holds what the operator manages.
    """

    model_config = ConfigDict(
        frozen=True, extra="ignore", populate_by_name=True, alias_generator=to_pascal
    )

    def to_api(self) -> dict[str, Any]:
        """Serialise into boto3 request parameters."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Quantity(ApiRecord):
    """A list block the operator always leaves empty."""

    quantity: int = 0


class StringItems(ApiRecord):
    """A ``{Quantity, Items}`` list of strings."""

    quantity: int
    items: Optional[tuple[str, ...]] = None

    @classmethod
    def of(cls, values: list[str]) -> "StringItems":
        """Build the block, omitting Items when there are none."""
        return cls(quantity=len(values), items=tuple(values) if values else None)


class AllowedMethods(ApiRecord):
    quantity: int
    items: tuple[str, ...]
    cached_methods: StringItems


class TrustedSigners(ApiRecord):
    enabled: bool = False
    quantity: int = 0


class CookiePreference(ApiRecord):
    forward: str


class ForwardedValues(ApiRecord):
    query_string: bool
    cookies: CookiePreference
    headers: StringItems
    query_string_cache_keys: StringItems


class DefaultCacheBehavior(ApiRecord):
    target_origin_id: str
    viewer_protocol_policy: str
    allowed_methods: AllowedMethods
    compress: bool = True
    smooth_streaming: bool = False
    field_level_encryption_id: str = ""
    trusted_signers: TrustedSigners = Field(default_factory=TrustedSigners)
    lambda_function_associations: Quantity = Field(default_factory=Quantity)
    cache_policy_id: Optional[str] = None
    origin_request_policy_id: Optional[str] = None
    forwarded_values: Optional[ForwardedValues] = None
    min_ttl: Optional[int] = Field(default=None, alias="MinTTL")
    default_ttl: Optional[int] = Field(default=None, alias="DefaultTTL")
    max_ttl: Optional[int] = Field(default=None, alias="MaxTTL")

    @field_validator("cache_policy_id", "origin_request_policy_id")
    @classmethod
    def empty_as_unset(cls, v: Optional[str]) -> Optional[str]:
        """CloudFront may report an unset policy as an empty string."""
        return v or None


class CustomOriginConfig(ApiRecord):
    http_port: int = Field(alias="HTTPPort")
    https_port: int = Field(alias="HTTPSPort")
    origin_protocol_policy: str = "match-viewer"
    origin_read_timeout: int = 30
    origin_keepalive_timeout: int = 30
    origin_ssl_protocols: StringItems = Field(
        default_factory=lambda: StringItems.of(["TLSv1.2"])
    )


class OriginRecord(ApiRecord):
    id: str
    domain_name: str
    origin_path: str = ""
    custom_headers: Quantity = Field(default_factory=Quantity)
    custom_origin_config: Optional[CustomOriginConfig] = None
    connection_attempts: int = 3
    connection_timeout: int = 10


class Origins(ApiRecord):
    quantity: int
    items: tuple[OriginRecord, ...]


class GeoRestriction(ApiRecord):
    restriction_type: str = "none"
    quantity: int = 0


class Restrictions(ApiRecord):
    geo_restriction: GeoRestriction = Field(default_factory=GeoRestriction)


class LoggingConfig(ApiRecord):
    enabled: bool = False
    include_cookies: bool = False
    bucket: str = ""
    prefix: str = ""


class ViewerCertificate(ApiRecord):
    cloud_front_default_certificate: bool
    minimum_protocol_version: str
    certificate_source: Optional[str] = None
    acm_certificate_arn: Optional[str] = Field(default=None, alias="ACMCertificateArn")
    certificate: Optional[str] = None
    ssl_support_method: Optional[str] = Field(default=None, alias="SSLSupportMethod")

    @model_validator(mode="before")
    @classmethod
    def drop_default_support_method(cls, data: Any) -> Any:
        """CloudFront reports ``vip`` for its default certificate, which is not a setting."""
        if isinstance(data, dict) and data.get("CloudFrontDefaultCertificate"):
            data = {k: v for k, v in data.items() if k != "SSLSupportMethod"}
        return data


class DistributionConfig(ApiRecord):
    """
    The managed subset of a CloudFront DistributionConfig.

    Used both for the desired state sent to CloudFront and for the live
    state it reports, so the two compare field by field.
    """

    caller_reference: str
    comment: str = COMMENT
    enabled: bool = True
    is_ipv6_enabled: bool = Field(default=True, alias="IsIPV6Enabled")
    aliases: StringItems
    default_root_object: str = ""
    origins: Origins
    origin_groups: Quantity = Field(default_factory=Quantity)
    default_cache_behavior: DefaultCacheBehavior
    cache_behaviors: Quantity = Field(default_factory=Quantity)
    custom_error_responses: Quantity = Field(default_factory=Quantity)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    price_class: str = "PriceClass_All"
    viewer_certificate: ViewerCertificate
    restrictions: Restrictions = Field(default_factory=Restrictions)
    web_acl_id: str = Field(default="", alias="WebACLId")
    http_version: str = "http2"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "DistributionConfig":
        """Project a config returned by CloudFront onto the managed fields."""
        return cls.model_validate(data)

    def matches(self, other: "DistributionConfig") -> bool:
        """
        Compare the serialised forms, ignoring how each record was built.

        String lists such as aliases and methods are sets to CloudFront, so
        their order does not count.
        """
        return _unordered(self.to_api()) == _unordered(other.to_api())


def _unordered(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _unordered(item) for key, item in value.items()}
    if isinstance(value, list):
        items = [_unordered(item) for item in value]
        if all(isinstance(item, str) for item in items):
            return sorted(items)
        return items
    return value


def calculate_methods(supported: list[str]) -> tuple[list[str], list[str]]:
    """
    Map requested HTTP methods onto the subsets CloudFront supports.

    CloudFront accepts HEAD+GET, HEAD+GET+OPTIONS, or all six methods.
    HEAD and GET are always cached, OPTIONS is cached whenever allowed,
    POST, PUT and DELETE never are.

    Args:
        supported: Requested methods (upper case)

    Returns:
        (allowed methods, cached methods)
    """
    methods = list(BASE_METHODS)
    for method in supported:
        if method in UNCACHEABLE_METHODS:
            return list(ALL_METHODS), list(CACHEABLE_METHODS)
        if method == "OPTIONS" and method not in methods:
            methods.append(method)
    return methods, list(methods)


def calculate_viewer_policy(tls: Optional[TLSSpec]) -> str:
    """Derive the viewer protocol policy from the Distribution's TLS mode."""
    if tls is None or tls.mode == "both":
        return "allow-all"
    if tls.mode == "only":
        return "https-only"
    return "redirect-to-https"


def calculate_viewer_certificate(certificate_arn: str, ssl_mode: str) -> ViewerCertificate:
    """Use the imported ACM certificate when there is one, else CloudFront's own."""
    if certificate_arn:
        return ViewerCertificate(
            cloud_front_default_certificate=False,
            certificate_source="acm",
            acm_certificate_arn=certificate_arn,
            certificate=certificate_arn,
            minimum_protocol_version="TLSv1.2_2021",
            ssl_support_method=ssl_mode,
        )
    return ViewerCertificate(
        cloud_front_default_certificate=True,
        certificate_source="cloudfront",
        minimum_protocol_version="TLSv1",
    )


def calculate_forwarded_values(cache_policy_id: Optional[str]) -> Optional[ForwardedValues]:
    """
    Legacy cache settings, used only when no cache policy is set.

    The Host header is always forwarded so the origin's ingress
    controller can route the request.
    """
    if cache_policy_id:
        return None
    return ForwardedValues(
        query_string=True,
        cookies=CookiePreference(forward="none"),
        headers=StringItems.of(["Host"]),
        query_string_cache_keys=StringItems.of([]),
    )


def calculate_ttls(cache_policy_id: Optional[str]) -> tuple[Optional[int], Optional[int], Optional[int]]:
    """Return (min, default, max) TTLs; unset when a cache policy owns them."""
    if cache_policy_id:
        return None, None, None
    return DEFAULT_MIN_TTL, DEFAULT_DEFAULT_TTL, DEFAULT_MAX_TTL


def generate_distribution_config(
    distribution: Distribution,
    class_spec: CloudFrontSpec,
    origin: ResolvedOrigin,
    certificate_arn: str = "",
) -> DistributionConfig:
    """
    Build the full desired state of a CloudFront distribution.

    Used to create distributions, to detect drift on existing ones, and
    as the body of updates.

    Args:
        distribution: The Distribution being reconciled
        class_spec: The class's CloudFront settings
        origin: Resolved origin
        certificate_arn: Imported ACM certificate, empty for none

    Returns:
        The desired config
    """
    spec = distribution.spec
    allowed, cached = calculate_methods(spec.supported_methods or class_spec.supported_methods)
    min_ttl, default_ttl, max_ttl = calculate_ttls(class_spec.cache_policy_id)

    return DistributionConfig(
        caller_reference=distribution.metadata.uid,
        aliases=StringItems.of(spec.hosts),
        origins=Origins(
            quantity=1,
            items=(
                OriginRecord(
                    id=origin.host,
                    domain_name=origin.host,
                    custom_origin_config=CustomOriginConfig(
                        http_port=origin.http_port,
                        https_port=origin.https_port,
                    ),
                ),
            ),
        ),
        default_cache_behavior=DefaultCacheBehavior(
            target_origin_id=origin.host,
            viewer_protocol_policy=calculate_viewer_policy(spec.tls),
            allowed_methods=AllowedMethods(
                quantity=len(allowed),
                items=tuple(allowed),
                cached_methods=StringItems.of(cached),
            ),
            cache_policy_id=class_spec.cache_policy_id,
            origin_request_policy_id=class_spec.origin_request_policy_id,
            forwarded_values=calculate_forwarded_values(class_spec.cache_policy_id),
            min_ttl=min_ttl,
            default_ttl=default_ttl,
            max_ttl=max_ttl,
        ),
        viewer_certificate=calculate_viewer_certificate(certificate_arn, class_spec.ssl_mode),
    )
