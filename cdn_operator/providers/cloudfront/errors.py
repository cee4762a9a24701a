"""Translation of botocore errors into the reconciler's error taxonomy."""

import re
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from cdn_operator.errors import ConflictError, NotFoundError, ProviderError

# Everything the AWS SDK raises for a failed call
AWS_ERRORS = (ClientError, BotoCoreError)

NOT_FOUND_CODES = {"NoSuchDistribution", "ResourceNotFoundException"}
CONFLICT_CODES = {"DistributionAlreadyExists"}

# CloudFront distribution ids are 13 or 14 upper-case alphanumerics
DISTRIBUTION_ID_PATTERN = re.compile(r"\b[A-Z0-9]{13,14}\b")


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def error_message(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Message", "") or str(error)


def translate_error(error: Exception, action: str) -> ProviderError:
    """
    Map an AWS SDK exception onto a ProviderError subclass.

    Args:
        error: The raised ClientError or BotoCoreError
        action: What was being attempted, for the message

    Returns:
        NotFoundError, ConflictError or ProviderError
    """
    if isinstance(error, ClientError):
        code = error_code(error)
        message = f"{action} failed: {code}: {error_message(error)}"
        if code in NOT_FOUND_CODES:
            return NotFoundError(message, code)
        if code in CONFLICT_CODES:
            return ConflictError(message, code)
        return ProviderError(message, code)
    return ProviderError(f"{action} failed: {error}")


def extract_distribution_id(message: str) -> Optional[str]:
    """Find the id of the conflicting distribution in a CloudFront error message."""
    match = DISTRIBUTION_ID_PATTERN.search(message)
    return match.group(0) if match else None
