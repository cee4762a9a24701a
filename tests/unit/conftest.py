"""Shared fixtures: in-memory Kubernetes and AWS fakes, generated certificates."""

import base64
import copy
import datetime
from dataclasses import dataclass
from typing import Any, Callable, Optional

import pytest
from botocore.exceptions import ClientError
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from kubernetes import client

from cdn_operator.config import OperatorConfig
from cdn_operator.utils.metrics import OperatorMetrics


def client_error(code: str, message: str = "", operation: str = "Operation") -> ClientError:
    """Build the ClientError botocore raises for a failed API call."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


# Certificates


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _issue(
    common_name: str,
    key: Any,
    serial: int,
    issuer: Optional[x509.Certificate] = None,
    issuer_key: Any = None,
    ca: bool = False,
) -> x509.Certificate:
    now = datetime.datetime.now(datetime.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(issuer.subject if issuer else _name(common_name))
        .public_key(key.public_key())
        .serial_number(serial)
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    return builder.sign(issuer_key or key, hashes.SHA256())


def _pem(certificate: x509.Certificate) -> bytes:
    return certificate.public_bytes(serialization.Encoding.PEM)


@dataclass
class TLSMaterial:
    """A CA, a leaf issued by it and the leaf's key in several encodings."""

    ca_pem: bytes
    leaf_pem: bytes
    leaf_serial: int
    key_pem: bytes
    pkcs8_key_pem: bytes
    issue: Callable[[int], bytes]


@pytest.fixture(scope="session")
def tls() -> TLSMaterial:
    """Generated TLS material; ``issue(serial)`` signs another leaf for the same key."""
    ca_key = ec.generate_private_key(ec.SECP256R1())
    ca = _issue("Test CA", ca_key, serial=1, ca=True)
    leaf_key = ec.generate_private_key(ec.SECP256R1())

    def issue(serial: int) -> bytes:
        return _pem(_issue("www.example.com", leaf_key, serial, issuer=ca, issuer_key=ca_key))

    return TLSMaterial(
        ca_pem=_pem(ca),
        leaf_pem=issue(0x0A1B2C),
        leaf_serial=0x0A1B2C,
        key_pem=leaf_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        ),
        pkcs8_key_pem=leaf_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ),
        issue=issue,
    )


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def make_tls_secret(
    name: str, crt: bytes, key: bytes, namespace: str = "default", type_: str = "kubernetes.io/tls"
) -> client.V1Secret:
    return client.V1Secret(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        type=type_,
        data={"tls.crt": b64(crt), "tls.key": b64(key)},
    )


@pytest.fixture
def tls_secret() -> Callable[..., client.V1Secret]:
    """Factory for ``kubernetes.io/tls`` secrets."""
    return make_tls_secret


# Kubernetes


class FakeK8s:
    """In-memory stand-in for K8sClient."""

    def __init__(self, settings: OperatorConfig):
        self.settings = settings
        self.distributions: dict[tuple[str, str], dict[str, Any]] = {}
        self.classes: dict[tuple[str, str], dict[str, Any]] = {}
        self.cluster_classes: dict[str, dict[str, Any]] = {}
        self.secrets: dict[tuple[str, str], client.V1Secret] = {}
        self.services: dict[tuple[str, str], client.V1Service] = {}
        self.ingresses: dict[tuple[str, str], client.V1Ingress] = {}
        self.service_accounts: dict[tuple[str, str], client.V1ServiceAccount] = {}
        self.patches: list[dict[str, Any]] = []
        self.status_patches: list[dict[str, Any]] = []
        self.token_requests: list[tuple[str, str, str]] = []

    def get_distribution(self, namespace: str, name: str) -> Optional[dict[str, Any]]:
        body = self.distributions.get((namespace, name))
        return copy.deepcopy(body) if body is not None else None

    def patch_distribution(self, namespace: str, name: str, body: dict[str, Any]) -> dict[str, Any]:
        self.patches.append(copy.deepcopy(body))
        obj = self.distributions[(namespace, name)]
        meta = body.get("metadata", {})
        if "finalizers" in meta:
            obj["metadata"]["finalizers"] = list(meta["finalizers"])
        if "annotations" in meta:
            obj["metadata"].setdefault("annotations", {}).update(meta["annotations"])
        return copy.deepcopy(obj)

    def patch_distribution_status(
        self, namespace: str, name: str, status: dict[str, Any]
    ) -> dict[str, Any]:
        self.status_patches.append(copy.deepcopy(status))
        obj = self.distributions[(namespace, name)]
        obj["status"] = copy.deepcopy(status)
        return copy.deepcopy(obj)

    def get_distribution_class(self, namespace: str, name: str) -> Optional[dict[str, Any]]:
        return self.classes.get((namespace, name))

    def get_cluster_distribution_class(self, name: str) -> Optional[dict[str, Any]]:
        return self.cluster_classes.get(name)

    def get_secret(self, namespace: str, name: str) -> Optional[client.V1Secret]:
        return self.secrets.get((namespace, name))

    def get_service(self, namespace: str, name: str) -> Optional[client.V1Service]:
        return self.services.get((namespace, name))

    def get_ingress(self, namespace: str, name: str) -> Optional[client.V1Ingress]:
        return self.ingresses.get((namespace, name))

    def get_service_account(self, namespace: str, name: str) -> Optional[client.V1ServiceAccount]:
        return self.service_accounts.get((namespace, name))

    def create_service_account_token(self, namespace: str, name: str, audience: str) -> str:
        self.token_requests.append((namespace, name, audience))
        return f"token-for-{namespace}-{name}"

    # Helpers for tests

    def add_distribution(self, body: dict[str, Any]) -> None:
        meta = body["metadata"]
        self.distributions[(meta.get("namespace", "default"), meta["name"])] = copy.deepcopy(body)

    def distribution(self, namespace: str = "default", name: str = "site") -> dict[str, Any]:
        return self.distributions[(namespace, name)]


@pytest.fixture
def settings() -> OperatorConfig:
    return OperatorConfig()


@pytest.fixture
def k8s(settings: OperatorConfig) -> FakeK8s:
    return FakeK8s(settings)


@pytest.fixture
def metrics() -> OperatorMetrics:
    """Metrics on a private registry."""
    return OperatorMetrics()


def make_distribution(
    name: str = "site",
    namespace: str = "default",
    uid: str = "2f9c1f3e-7d1e-4b8e-9c35-5d0c1c2f7a10",
    spec: Optional[dict[str, Any]] = None,
    status: Optional[dict[str, Any]] = None,
    finalizers: Optional[list[str]] = None,
    deleting: bool = False,
) -> dict[str, Any]:
    """Raw Distribution object as returned by the API server."""
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "uid": uid,
        "resourceVersion": "1",
        "finalizers": finalizers or [],
    }
    if deleting:
        metadata["deletionTimestamp"] = "2026-01-01T00:00:00Z"
    body: dict[str, Any] = {
        "apiVersion": "cdn.dev/v1alpha1",
        "kind": "Distribution",
        "metadata": metadata,
        "spec": spec
        or {
            "distributionClass": {"kind": "ClusterDistributionClass", "name": "cloudfront"},
            "origin": {"host": "origin.example.com"},
            "hosts": ["www.example.com"],
        },
    }
    if status is not None:
        body["status"] = status
    return body


@pytest.fixture
def distribution_body() -> Callable[..., dict[str, Any]]:
    """Factory for raw Distribution objects."""
    return make_distribution


def make_class(cloudfront: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    providers = {} if cloudfront is None else {"cloudfront": cloudfront}
    return {"spec": {"providers": providers}}


@pytest.fixture
def class_body() -> Callable[..., dict[str, Any]]:
    """Factory for raw (Cluster)DistributionClass objects."""
    return make_class


def make_service(
    name: str,
    namespace: str = "default",
    hostname: Optional[str] = None,
    ip: Optional[str] = None,
    ports: Optional[dict[str, int]] = None,
) -> client.V1Service:
    ingress = []
    if hostname or ip:
        ingress = [client.V1LoadBalancerIngress(hostname=hostname, ip=ip)]
    return client.V1Service(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        spec=client.V1ServiceSpec(
            ports=[client.V1ServicePort(name=n, port=p) for n, p in (ports or {}).items()]
        ),
        status=client.V1ServiceStatus(
            load_balancer=client.V1LoadBalancerStatus(ingress=ingress)
        ),
    )


@pytest.fixture
def service() -> Callable[..., client.V1Service]:
    """Factory for LoadBalancer services."""
    return make_service


def make_ingress(
    name: str, namespace: str = "default", hostname: Optional[str] = None, ip: Optional[str] = None
) -> client.V1Ingress:
    ingress = []
    if hostname or ip:
        ingress = [client.V1IngressLoadBalancerIngress(hostname=hostname, ip=ip)]
    return client.V1Ingress(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        status=client.V1IngressStatus(
            load_balancer=client.V1IngressLoadBalancerStatus(ingress=ingress)
        ),
    )


@pytest.fixture
def ingress() -> Callable[..., client.V1Ingress]:
    """Factory for ingresses with a load balancer status."""
    return make_ingress


# AWS


class FakeCloudFront:
    """
    In-memory CloudFront.

    Live configs come back with fields the operator does not manage, as
    the real API returns them.
    """

    def __init__(self) -> None:
        self.distributions: dict[str, dict[str, Any]] = {}
        self.calls: list[str] = []
        self.failures: dict[str, ClientError] = {}
        self._next = 1

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        error = self.failures.pop(operation, None)
        if error is not None:
            raise error

    def _view(self, distribution_id: str) -> dict[str, Any]:
        stored = self.distributions[distribution_id]
        return copy.deepcopy(
            {
                "Id": distribution_id,
                "ARN": f"arn:aws:cloudfront::123456789012:distribution/{distribution_id}",
                "Status": stored["Status"],
                "DomainName": stored["DomainName"],
                "LastModifiedTime": datetime.datetime(2026, 1, 1),
                "InProgressInvalidationBatches": 0,
                "DistributionConfig": stored["DistributionConfig"],
            }
        )

    @staticmethod
    def _as_live(config: dict[str, Any]) -> dict[str, Any]:
        live = copy.deepcopy(config)
        live.setdefault("ContinuousDeploymentPolicyId", "")
        live.setdefault("Staging", False)
        behavior = live["DefaultCacheBehavior"]
        behavior.setdefault("FunctionAssociations", {"Quantity": 0})
        behavior.setdefault("TrustedKeyGroups", {"Enabled": False, "Quantity": 0})
        behavior.setdefault("RealtimeLogConfigArn", "")
        for origin in live["Origins"]["Items"]:
            origin.setdefault("OriginShield", {"Enabled": False})
            origin.setdefault("OriginAccessControlId", "")
        certificate = live["ViewerCertificate"]
        if certificate.get("CloudFrontDefaultCertificate"):
            certificate.setdefault("SSLSupportMethod", "vip")
        return live

    def create_distribution(self, DistributionConfig: dict[str, Any]) -> dict[str, Any]:
        self._record("create_distribution")
        for distribution_id, stored in self.distributions.items():
            if stored["DistributionConfig"]["CallerReference"] == DistributionConfig["CallerReference"]:
                raise client_error(
                    "DistributionAlreadyExists",
                    "The caller reference that you are using to create a distribution is "
                    f"associated with another distribution. Already exists: {distribution_id}",
                    "CreateDistribution",
                )
        distribution_id = f"E{self._next:013d}"
        self._next += 1
        self.distributions[distribution_id] = {
            "Status": "InProgress",
            "DomainName": f"d{distribution_id.lower()}.cloudfront.net",
            "DistributionConfig": self._as_live(DistributionConfig),
            "ETag": "ETAG1",
        }
        return {"Distribution": self._view(distribution_id), "ETag": "ETAG1"}

    def get_distribution(self, Id: str) -> dict[str, Any]:
        self._record("get_distribution")
        if Id not in self.distributions:
            raise client_error(
                "NoSuchDistribution", "The specified distribution does not exist.", "GetDistribution"
            )
        return {"Distribution": self._view(Id), "ETag": self.distributions[Id]["ETag"]}

    def update_distribution(
        self, DistributionConfig: dict[str, Any], Id: str, IfMatch: str
    ) -> dict[str, Any]:
        self._record("update_distribution")
        stored = self.distributions[Id]
        if IfMatch != stored["ETag"]:
            raise client_error("PreconditionFailed", "ETag mismatch", "UpdateDistribution")
        stored["DistributionConfig"] = self._as_live(DistributionConfig)
        stored["Status"] = "InProgress"
        stored["ETag"] = f"ETAG{int(stored['ETag'][4:]) + 1}"
        return {"Distribution": self._view(Id), "ETag": stored["ETag"]}

    def delete_distribution(self, Id: str, IfMatch: str) -> dict[str, Any]:
        self._record("delete_distribution")
        stored = self.distributions[Id]
        if stored["DistributionConfig"]["Enabled"] or stored["Status"] != "Deployed":
            raise client_error("DistributionNotDisabled", "Not disabled", "DeleteDistribution")
        del self.distributions[Id]
        return {}

    # Helpers for tests

    def deploy(self, distribution_id: str) -> None:
        """Finish CloudFront's asynchronous deployment."""
        self.distributions[distribution_id]["Status"] = "Deployed"

    def deploy_all(self) -> None:
        for distribution_id in self.distributions:
            self.deploy(distribution_id)

    def add(self, distribution_id: str, config: dict[str, Any], status: str = "Deployed") -> None:
        self.distributions[distribution_id] = {
            "Status": status,
            "DomainName": f"d{distribution_id.lower()}.cloudfront.net",
            "DistributionConfig": self._as_live(config),
            "ETag": "ETAG1",
        }


class FakeACM:
    """In-memory ACM keeping the serial of every imported certificate."""

    def __init__(self) -> None:
        self.certificates: dict[str, dict[str, Any]] = {}
        self.imports: list[dict[str, Any]] = []
        self.calls: list[str] = []
        self.failures: dict[str, ClientError] = {}
        self._next = 1

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        error = self.failures.pop(operation, None)
        if error is not None:
            raise error

    def import_certificate(self, **params: Any) -> dict[str, Any]:
        self._record("import_certificate")
        self.imports.append(params)
        parsed = x509.load_pem_x509_certificate(params["Certificate"])
        arn = params.get("CertificateArn")
        if arn is None:
            arn = f"arn:aws:acm:us-east-1:123456789012:certificate/cert-{self._next}"
            self._next += 1
        # ACM reports serials as colon separated upper-case hex pairs
        digits = f"{parsed.serial_number:x}"
        digits = ("0" + digits) if len(digits) % 2 else digits
        serial = ":".join(digits[i : i + 2] for i in range(0, len(digits), 2)).upper()
        self.certificates[arn] = {"CertificateArn": arn, "Serial": serial}
        return {"CertificateArn": arn}

    def describe_certificate(self, CertificateArn: str) -> dict[str, Any]:
        self._record("describe_certificate")
        if CertificateArn not in self.certificates:
            raise client_error(
                "ResourceNotFoundException", f"Could not find certificate {CertificateArn}.",
                "DescribeCertificate",
            )
        return {"Certificate": dict(self.certificates[CertificateArn])}

    def delete_certificate(self, CertificateArn: str) -> dict[str, Any]:
        self._record("delete_certificate")
        if CertificateArn not in self.certificates:
            raise client_error(
                "ResourceNotFoundException", f"Could not find certificate {CertificateArn}.",
                "DeleteCertificate",
            )
        del self.certificates[CertificateArn]
        return {}


@pytest.fixture
def cloudfront() -> FakeCloudFront:
    return FakeCloudFront()


@pytest.fixture
def acm() -> FakeACM:
    return FakeACM()


@pytest.fixture
def aws_error() -> Callable[..., ClientError]:
    """Factory for botocore ClientErrors."""
    return client_error
