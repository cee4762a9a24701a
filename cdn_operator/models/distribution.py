"""Distribution Custom Resource Definition models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from cdn_operator.utils.validators import validate_hostname, validate_resource_name


class ReferenceKind(str, Enum):
    """Kinds a Distribution may reference."""

    DISTRIBUTION_CLASS = "DistributionClass"
    CLUSTER_DISTRIBUTION_CLASS = "ClusterDistributionClass"
    SERVICE = "Service"
    INGRESS = "Ingress"
    SECRET = "Secret"


class ResourceModel(BaseModel):
    """Base for models mirroring camelCase Kubernetes objects."""

    model_config = ConfigDict(populate_by_name=True)


class ObjectReference(ResourceModel):
    """Reference to another object, in the Distribution's namespace unless cluster-scoped."""

    kind: str = Field(description="Kind of the referenced object")
    name: str = Field(description="Name of the referenced object")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the name is a Kubernetes object name."""
        if not validate_resource_name(v):
            raise ValueError(f"invalid object name {v!r}")
        return v


class ServicePort(ResourceModel):
    """A port on the origin, given by name (looked up on a Service) or number."""

    name: Optional[str] = Field(default=None, description="Named port on the target Service")
    number: Optional[int] = Field(default=None, ge=1, le=65535, description="Port number")


class Origin(ResourceModel):
    """Where the CDN forwards uncached requests to."""

    host: Optional[str] = Field(default=None, description="Explicit origin hostname")
    target: Optional[ObjectReference] = Field(
        default=None,
        alias="targetRef",
        validation_alias=AliasChoices("targetRef", "target"),
        description="Service or Ingress whose load balancer is the origin",
    )
    http_port: Optional[ServicePort] = Field(default=None, alias="httpPort")
    https_port: Optional[ServicePort] = Field(default=None, alias="httpsPort")

    @field_validator("http_port", "https_port", mode="before")
    @classmethod
    def coerce_port_number(cls, v: Any) -> Any:
        """Accept a bare port number as shorthand for ``{number: <port>}``."""
        if isinstance(v, int):
            return {"number": v}
        return v


class TLSSpec(ResourceModel):
    """TLS settings of a Distribution."""

    mode: Literal["redirect", "only", "both"] = Field(
        default="redirect", description="How plain HTTP viewers are handled"
    )
    secret_name: str = Field(alias="secretName", description="kubernetes.io/tls Secret")


class DistributionSpec(ResourceModel):
    """
    Distribution Custom Resource Specification.

    Defines the desired CDN distribution in front of an origin.
    """

    distribution_class: ObjectReference = Field(
        alias="distributionClass", description="(Cluster)DistributionClass to use"
    )
    origin: Origin = Field(default_factory=Origin)
    hosts: list[str] = Field(default_factory=list, description="Hostnames served")
    tls: Optional[TLSSpec] = Field(default=None)
    supported_methods: list[str] = Field(
        default_factory=list, alias="supportedMethods", description="HTTP methods to support"
    )

    @field_validator("hosts")
    @classmethod
    def validate_hosts(cls, v: list[str]) -> list[str]:
        """Validate every host is a hostname (a leading wildcard is allowed)."""
        invalid = [host for host in v if not validate_hostname(host)]
        if invalid:
            raise ValueError(f"invalid hosts: {', '.join(invalid)}")
        return v

    @field_validator("supported_methods")
    @classmethod
    def normalise_methods(cls, v: list[str]) -> list[str]:
        """Upper-case HTTP method names."""
        return [method.upper() for method in v]


class Endpoint(ResourceModel):
    """Where a provider serves the distribution."""

    provider: str = Field(description="Provider responsible for this endpoint")
    host: Optional[str] = Field(default=None)
    ip: Optional[str] = Field(default=None)


class StatusDelta(ResourceModel):
    """
    A provider's contribution to a Distribution's status.

    Returned by providers and merged by the reconciler; providers never
    touch the Distribution itself.
    """

    provider: str
    external_id: str = ""
    external_certificate_id: str = ""
    external_status: str = ""
    endpoint: Optional[Endpoint] = None
    ready: bool = False


class DistributionStatus(ResourceModel):
    """
    Distribution Custom Resource Status.

    Represents the observed state of the external distribution.
    """

    ready: bool = Field(default=False)
    endpoints: list[Endpoint] = Field(default_factory=list)
    external_id: str = Field(default="", alias="externalId")
    external_certificate_id: str = Field(default="", alias="externalCertificateId")
    external_status: str = Field(default="", alias="externalStatus")
    conditions: list[dict[str, Any]] = Field(default_factory=list)

    def merge(self, delta: StatusDelta) -> "DistributionStatus":
        """
        Return a new status with a provider's delta applied.

        The provider's endpoint replaces any previous endpoint of the
        same provider (or removes it when the delta has none), its
        external fields are overwritten and readiness is AND-ed.
        """
        endpoints = [e for e in self.endpoints if e.provider != delta.provider]
        if delta.endpoint is not None:
            endpoints.append(delta.endpoint)
        return self.model_copy(
            update={
                "ready": self.ready and delta.ready,
                "endpoints": endpoints,
                "external_id": delta.external_id,
                "external_certificate_id": delta.external_certificate_id,
                "external_status": delta.external_status,
            },
            deep=True,
        )

    def add_condition(
        self,
        type_: str,
        status: str,
        reason: str,
        message: str,
        last_transition_time: Optional[str] = None,
    ) -> None:
        """
        Add or update a status condition.

        The transition time is kept from the existing condition of the
        same type unless its status changes, so an unchanged condition
        leaves the status unchanged.
        """
        previous = next((c for c in self.conditions if c.get("type") == type_), None)
        if last_transition_time is None:
            if previous is not None and previous.get("status") == status:
                last_transition_time = previous.get("lastTransitionTime")
            else:
                last_transition_time = (
                    datetime.now(timezone.utc).replace(microsecond=0).isoformat()
                )

        # Remove existing condition of same type
        self.conditions = [c for c in self.conditions if c.get("type") != type_]

        self.conditions.append(
            {
                "type": type_,
                "status": status,
                "reason": reason,
                "message": message,
                "lastTransitionTime": last_transition_time,
            }
        )

    def to_resource(self) -> dict[str, Any]:
        """Serialise for the status subresource."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ObjectMeta(ResourceModel):
    """The parts of ObjectMeta the reconciler needs."""

    name: str
    namespace: str = "default"
    uid: str = ""
    resource_version: Optional[str] = Field(default=None, alias="resourceVersion")
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: Optional[str] = Field(default=None, alias="deletionTimestamp")
    annotations: dict[str, str] = Field(default_factory=dict)


class Distribution(ResourceModel):
    """A Distribution custom resource."""

    metadata: ObjectMeta
    spec: DistributionSpec
    status: DistributionStatus = Field(default_factory=DistributionStatus)

    @classmethod
    def from_resource(cls, body: dict[str, Any]) -> "Distribution":
        """Build from the raw object returned by the Kubernetes API."""
        return cls.model_validate(
            {
                "metadata": body.get("metadata") or {},
                "spec": body.get("spec") or {},
                "status": body.get("status") or {},
            }
        )

    @property
    def is_deleting(self) -> bool:
        """Whether deletion has been requested."""
        return self.metadata.deletion_timestamp is not None

    def has_finalizer(self, finalizer: str) -> bool:
        """Check whether the given finalizer is set."""
        return finalizer in self.metadata.finalizers

    def references(self) -> list[tuple[str, str]]:
        """
        List the (kind, name) of every object this Distribution depends on.

        Used to map changes of classes, secrets, services and ingresses
        back onto the Distributions that need reconciling.
        """
        refs = [(self.spec.distribution_class.kind, self.spec.distribution_class.name)]
        if self.spec.origin.target is not None:
            refs.append((self.spec.origin.target.kind, self.spec.origin.target.name))
        if self.spec.tls is not None and self.spec.tls.secret_name:
            refs.append((ReferenceKind.SECRET.value, self.spec.tls.secret_name))
        return refs
