"""ACM certificate sub-provider."""

import logging
from typing import Any, Optional

from cdn_operator.errors import NotFoundError
from cdn_operator.providers.cloudfront.errors import AWS_ERRORS, translate_error
from cdn_operator.providers.cloudfront.state import CloudFrontState
from cdn_operator.resolvers import Certificate
from cdn_operator.utils.validators import canonical_serial

logger = logging.getLogger(__name__)


class CertificateProvider:
    """
    Keeps the Distribution's TLS certificate imported into ACM.

    The certificate is re-imported under the same ARN when the secret's
    serial number changes, so renewals need no distribution update.
    """

    def __init__(self, client: Any, state: CloudFrontState, certificate: Optional[Certificate] = None):
        self.client = client
        self.state = state
        self.certificate = certificate

    def reconcile(self) -> None:
        """
        Import or refresh the certificate.

        Raises:
            ProviderError: If an ACM call fails
        """
        if self.state.certificate_arn:
            self.check()
        else:
            self.create()

    def check(self) -> None:
        """Re-import when the certificate in ACM is not the one in the secret."""
        arn = self.state.certificate_arn
        try:
            response = self.client.describe_certificate(CertificateArn=arn)
        except AWS_ERRORS as e:
            error = translate_error(e, f"DescribeCertificate {arn}")
            if not isinstance(error, NotFoundError):
                raise error from e
            logger.info(f"Certificate {arn} no longer exists, importing again")
            self.state.certificate_arn = ""
            self.create()
            return

        serial = response.get("Certificate", {}).get("Serial", "")
        if canonical_serial(serial) != self.certificate.serial:
            logger.info(f"Certificate {arn} has serial {serial}, renewing")
            self.create()

    def create(self) -> None:
        """Import the certificate, in place when an ARN is already known."""
        params: dict[str, Any] = {
            "Certificate": self.certificate.certificate.encoded,
            "PrivateKey": self.certificate.key,
        }
        if self.certificate.chain:
            params["CertificateChain"] = self.certificate.chain
        if self.state.certificate_arn:
            params["CertificateArn"] = self.state.certificate_arn

        try:
            response = self.client.import_certificate(**params)
        except AWS_ERRORS as e:
            raise translate_error(e, "ImportCertificate") from e

        self.state.certificate_arn = response["CertificateArn"]
        logger.info(f"Imported certificate {self.state.certificate_arn}")

    def delete(self) -> None:
        """
        Delete the imported certificate; one that is already gone counts as deleted.

        Raises:
            ProviderError: If ACM refuses the deletion
        """
        arn = self.state.certificate_arn
        try:
            self.client.delete_certificate(CertificateArn=arn)
            logger.info(f"Deleted certificate {arn}")
        except AWS_ERRORS as e:
            error = translate_error(e, f"DeleteCertificate {arn}")
            if not isinstance(error, NotFoundError):
                raise error from e
            logger.info(f"Certificate {arn} was already deleted")
        self.state.certificate_arn = ""
