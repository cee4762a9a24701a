"""AWS CloudFront provider."""

from cdn_operator.providers.cloudfront.provider import CloudFrontProvider

__all__ = ["CloudFrontProvider"]
