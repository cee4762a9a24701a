"""Loads TLS secrets and parses them into certificates."""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from cdn_operator.errors import ValidationError
from cdn_operator.utils.k8s_client import K8sClient
from cdn_operator.utils.validators import canonical_serial, split_pem_blocks

logger = logging.getLogger(__name__)

TLS_SECRET_TYPE = "kubernetes.io/tls"
CERTIFICATE_KEY = "tls.crt"
PRIVATE_KEY_KEY = "tls.key"

# Traditional OpenSSL (RSA, EC) and PKCS#8 private key armour
PRIVATE_KEY_TYPES = ("RSA PRIVATE KEY", "EC PRIVATE KEY", "PRIVATE KEY")


@dataclass(frozen=True)
class CertificateWrapper:
    """Original and parsed representations of one certificate."""

    encoded: bytes
    parsed: x509.Certificate


@dataclass(frozen=True)
class Certificate:
    """A complete, parsed TLS certificate."""

    # The leaf certificate on its own
    certificate: CertificateWrapper
    # Certificates up the certification path, PEM concatenated (may be empty)
    chain: bytes
    # The private key, PEM
    key: bytes
    private_key: Any

    @property
    def serial(self) -> str:
        """Canonical hex-with-colon serial number of the leaf."""
        return canonical_serial(self.certificate.parsed.serial_number)


class CertificateResolver:
    """Loads a ``kubernetes.io/tls`` secret and parses it into a Certificate."""

    def __init__(self, k8s: K8sClient):
        self.k8s = k8s

    def resolve(self, namespace: str, name: str) -> Certificate:
        """
        Load and parse a TLS secret.

        Args:
            namespace: Secret namespace
            name: Secret name

        Returns:
            The parsed certificate

        Raises:
            ValidationError: If the secret is missing, has the wrong type,
                or its certificate or key cannot be parsed
        """
        secret = self.k8s.get_secret(namespace, name)
        if secret is None:
            raise ValidationError(f'Could not find the TLS secret "{name}"')
        if secret.type != TLS_SECRET_TYPE:
            raise ValidationError(
                f'TLS secret "{name}" has an invalid type. '
                f"Expecting {TLS_SECRET_TYPE}, got {secret.type}"
            )

        data = secret.data or {}
        leaf, chain = parse_certificate_chain(name, _get_data(name, data, CERTIFICATE_KEY))
        key, private_key = parse_private_key(name, _get_data(name, data, PRIVATE_KEY_KEY))

        return Certificate(certificate=leaf, chain=chain, key=key, private_key=private_key)


def _get_data(secret_name: str, data: dict[str, str], field: str) -> bytes:
    """Return a decoded data field, which must be present and non-empty."""
    raw = data.get(field)
    decoded = b""
    if raw:
        try:
            decoded = base64.b64decode(raw, validate=True)
        except binascii.Error as e:
            raise ValidationError(
                f'TLS secret "{secret_name}" has undecodable data "{field}"'
            ) from e
    if not decoded:
        raise ValidationError(
            f'TLS secret "{secret_name}" does not have the required data "{field}"'
        )
    return decoded


def parse_certificate_chain(secret_name: str, data: bytes) -> tuple[CertificateWrapper, bytes]:
    """
    Parse PEM certificates into the leaf and the remaining chain.

    Raises:
        ValidationError: If there is no certificate or any block does not parse
    """
    blocks = split_pem_blocks(data)
    if not blocks:
        raise ValidationError(f'TLS secret "{secret_name}" contains no PEM certificate')

    parsed = []
    for index, (block_type, block) in enumerate(blocks):
        if block_type != "CERTIFICATE":
            raise ValidationError(
                f'TLS secret "{secret_name}" has a {block_type} block '
                f"where a certificate was expected (position {index})"
            )
        try:
            parsed.append(x509.load_pem_x509_certificate(block))
        except ValueError as e:
            raise ValidationError(
                f'TLS secret "{secret_name}" has an invalid certificate at position {index}'
            ) from e

    leaf = CertificateWrapper(encoded=blocks[0][1], parsed=parsed[0])
    chain = b"".join(block for _, block in blocks[1:])
    return leaf, chain


def parse_private_key(secret_name: str, data: bytes) -> tuple[bytes, Any]:
    """
    Parse a single unencrypted PEM private key.

    Returns:
        The raw PEM block and the loaded key

    Raises:
        ValidationError: If there is not exactly one block, the block is not
            a private key form we accept, or it fails to load
    """
    blocks = split_pem_blocks(data)
    if len(blocks) != 1:
        raise ValidationError(
            f"TLS secret \"{secret_name}\"'s private key must be exactly one PEM block, "
            f"found {len(blocks)}"
        )

    block_type, block = blocks[0]
    if block_type not in PRIVATE_KEY_TYPES:
        raise ValidationError(
            f"TLS secret \"{secret_name}\"'s private key was invalid ({block_type})"
        )

    try:
        private_key = serialization.load_pem_private_key(block, password=None)
    except (ValueError, TypeError) as e:
        raise ValidationError(
            f"TLS secret \"{secret_name}\"'s private key could not be loaded"
        ) from e

    return block, private_key
