"""SSM Parameter Store access for rental core secrets.

Every secret lives under one root per environment:

    /rental/{environment}/stripe/secret_key
    /rental/{environment}/stripe/webhook_secret
    /rental/{environment}/exchange-rate/api_key

Values are SecureStrings, decrypted on read and cached for the life of the
process.
"""

import logging
from functools import lru_cache
from typing import ClassVar

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

PARAMETER_ROOT = "/rental"

STRIPE_SECRET_KEY = "stripe/secret_key"
STRIPE_WEBHOOK_SECRET = "stripe/webhook_secret"
EXCHANGE_RATE_API_KEY = "exchange-rate/api_key"


def parameter_name(environment: str, key: str) -> str:
    """Full parameter path for ``key`` in ``environment``.

    >>> parameter_name("prod", STRIPE_SECRET_KEY)
    '/rental/prod/stripe/secret_key'
    """
    return f"{PARAMETER_ROOT}/{environment}/{key.strip('/')}"


class SSMServiceError(Exception):
    """Raised when SSM parameter retrieval fails."""

    pass


class SSMService:
    """Service for retrieving secrets from AWS SSM Parameter Store.

    Usage:
        ssm = SSMService()
        stripe_key = ssm.get_secret("dev", STRIPE_SECRET_KEY)
    """

    _instance: ClassVar["SSMService | None"] = None
    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self) -> None:
        self._client = boto3.client("ssm")

    @classmethod
    def get_instance(cls) -> "SSMService":
        """Get singleton instance of SSMService."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Retrieve a parameter value from SSM Parameter Store.

        Args:
            name: Full parameter path (e.g., "/rental/dev/stripe/secret_key")
            use_cache: Whether to use cached value if available (default: True)

        Returns:
            The decrypted parameter value.

        Raises:
            SSMServiceError: If parameter cannot be retrieved.
        """
        if use_cache and name in self._cache:
            logger.debug("SSM cache hit for %s", name)
            return self._cache[name]

        try:
            logger.info("Fetching SSM parameter: %s", name)
            response = self._client.get_parameter(Name=name, WithDecryption=True)
            value = response["Parameter"]["Value"]
            self._cache[name] = value
            return value

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ParameterNotFound":
                raise SSMServiceError(f"SSM parameter not found: {name}") from e
            if error_code == "AccessDeniedException":
                raise SSMServiceError(
                    f"Access denied to SSM parameter: {name}. "
                    "Check IAM permissions for ssm:GetParameter."
                ) from e
            raise SSMServiceError(f"Failed to retrieve SSM parameter {name}: {e}") from e

    def get_secret(self, environment: str, key: str) -> str:
        """Retrieve one of the rental secrets for ``environment``.

        Args:
            environment: Environment name (dev, prod)
            key: Secret key under the environment root, e.g. STRIPE_SECRET_KEY

        Raises:
            SSMServiceError: If the secret cannot be retrieved.
        """
        return self.get_parameter(parameter_name(environment, key))

    def clear_cache(self) -> None:
        """Clear all cached parameters."""
        self._cache.clear()
        logger.info("SSM parameter cache cleared")


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance (singleton pattern)."""
    return SSMService.get_instance()
