"""AWS credentials for DistributionClasses."""

import base64
import logging
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config
from kubernetes.client.exceptions import ApiException

from cdn_operator.config import OperatorConfig, get_config
from cdn_operator.errors import ProviderError
from cdn_operator.models.distribution_class import AwsAuth, AwsJwtAuth, NamespacedName
from cdn_operator.providers.cloudfront.errors import AWS_ERRORS, translate_error
from cdn_operator.utils.k8s_client import K8sClient

logger = logging.getLogger(__name__)

ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"


def client_config(settings: OperatorConfig) -> Config:
    """botocore client configuration with the operator's timeouts and retries."""
    return Config(
        connect_timeout=settings.aws_connect_timeout,
        read_timeout=settings.aws_read_timeout,
        retries={"max_attempts": settings.aws_max_attempts, "mode": "standard"},
    )


class AwsSessionFactory:
    """
    Builds boto3 sessions from a class's ``auth`` block.

    - no auth: the default credential chain of the operator's pod
    - ``accessKeySecret``: static keys read from a Secret
    - ``role``: STS AssumeRole, on top of the static keys if both are set
    - ``jwt``: STS AssumeRoleWithWebIdentity with a ServiceAccount token
      and the role ARN annotated on that ServiceAccount
    """

    def __init__(
        self,
        k8s: K8sClient,
        settings: Optional[OperatorConfig] = None,
        session_class: Callable[..., Any] = boto3.session.Session,
    ):
        self.k8s = k8s
        self.settings = settings or get_config()
        self.session_class = session_class

    def session(self, auth: Optional[AwsAuth], class_namespace: Optional[str]) -> Any:
        """
        Create a session for the given auth settings.

        Args:
            auth: The class's auth block, if any
            class_namespace: Namespace the class's references default to
                (None for cluster-scoped classes)

        Returns:
            A boto3 session

        Raises:
            ProviderError: If credentials cannot be obtained
        """
        if auth is None:
            return self.session_class()

        if auth.jwt is not None:
            return self._web_identity_session(auth.jwt, class_namespace)

        if auth.access_key_secret is not None:
            session = self._static_key_session(auth.access_key_secret, class_namespace)
        else:
            session = self.session_class()

        if auth.role:
            return self._assume_role_session(session, auth.role)
        return session

    def _sts(self, session: Any) -> Any:
        return session.client("sts", config=client_config(self.settings))

    def _session_from_credentials(self, credentials: dict[str, Any]) -> Any:
        return self.session_class(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
        )

    def _static_key_session(self, ref: NamespacedName, class_namespace: Optional[str]) -> Any:
        namespace = _namespace_for(ref, class_namespace, "access key secret")
        try:
            secret = self.k8s.get_secret(namespace, ref.name)
        except ApiException as e:
            raise ProviderError(f"Could not read access key secret {namespace}/{ref.name}: {e}") from e
        if secret is None:
            raise ProviderError(f"Access key secret {namespace}/{ref.name} not found")

        data = secret.data or {}
        if not data.get(ACCESS_KEY_ID) or not data.get(SECRET_ACCESS_KEY):
            raise ProviderError(
                f"Access key secret {namespace}/{ref.name} must contain "
                f"{ACCESS_KEY_ID} and {SECRET_ACCESS_KEY}"
            )

        return self.session_class(
            aws_access_key_id=base64.b64decode(data[ACCESS_KEY_ID]).decode().strip(),
            aws_secret_access_key=base64.b64decode(data[SECRET_ACCESS_KEY]).decode().strip(),
        )

    def _assume_role_session(self, session: Any, role_arn: str) -> Any:
        logger.debug(f"Assuming role {role_arn}")
        try:
            response = self._sts(session).assume_role(
                RoleArn=role_arn, RoleSessionName=self.settings.aws_session_name
            )
        except AWS_ERRORS as e:
            raise translate_error(e, f"AssumeRole {role_arn}") from e
        return self._session_from_credentials(response["Credentials"])

    def _web_identity_session(self, jwt: AwsJwtAuth, class_namespace: Optional[str]) -> Any:
        ref = jwt.service_account
        namespace = _namespace_for(ref, class_namespace, "service account")

        try:
            account = self.k8s.get_service_account(namespace, ref.name)
            if account is None:
                raise ProviderError(f"Service account {namespace}/{ref.name} not found")

            annotations = (account.metadata.annotations if account.metadata else None) or {}
            role_arn = annotations.get(jwt.annotation_name)
            if not role_arn:
                raise ProviderError(
                    f"Service account {namespace}/{ref.name} has no {jwt.annotation_name} annotation"
                )

            token = self.k8s.create_service_account_token(namespace, ref.name, jwt.sts_audience)
        except ApiException as e:
            raise ProviderError(
                f"Could not obtain a token for service account {namespace}/{ref.name}: {e}"
            ) from e

        logger.debug(f"Assuming role {role_arn} with web identity {namespace}/{ref.name}")
        try:
            response = self._sts(self.session_class()).assume_role_with_web_identity(
                RoleArn=role_arn,
                RoleSessionName=self.settings.aws_session_name,
                WebIdentityToken=token,
            )
        except AWS_ERRORS as e:
            raise translate_error(e, f"AssumeRoleWithWebIdentity {role_arn}") from e
        return self._session_from_credentials(response["Credentials"])


def _namespace_for(ref: NamespacedName, class_namespace: Optional[str], what: str) -> str:
    """Namespaced classes use their own namespace; cluster classes must name one."""
    namespace = class_namespace or ref.namespace
    if not namespace:
        raise ProviderError(
            f"The {what} {ref.name} has no namespace (required for cluster-scoped classes)"
        )
    return namespace
