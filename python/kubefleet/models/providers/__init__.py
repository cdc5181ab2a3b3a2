"""
kubefleet.models.providers

Unified aggregator import for:
- ProviderName
- The dictionary dispatch from raw account credentials to typed credential models
"""

from enum import Enum
from typing import Any, Callable, Dict

from pydantic import BaseModel, ValidationError

from kubefleet.errors import InvalidCredentials, UnsupportedProvider
from kubefleet.models.providers.api_keys.aws import AWSApiKey


class ProviderName(str, Enum):
    aws = "aws"
    azure = "azure"
    gcp = "gcp"


def _aws_credentials(raw: Dict[str, Any]) -> BaseModel:
    return AWSApiKey(**raw)


CREDENTIALS_MODEL_MAP: Dict[ProviderName, Callable[[Dict[str, Any]], BaseModel]] = {
    ProviderName.aws: _aws_credentials,
}


def parse_account_credentials(
    provider: ProviderName, raw_credentials: Dict[str, Any]
) -> BaseModel:
    """Validate opaque account credentials into the provider's credential model.

    Raises:
        UnsupportedProvider: If no credential model is registered for `provider`.
        InvalidCredentials: If the raw mapping does not validate.
    """
    if provider not in CREDENTIALS_MODEL_MAP:
        raise UnsupportedProvider(f"Unsupported provider: {provider.value}")
    try:
        return CREDENTIALS_MODEL_MAP[provider](raw_credentials)
    except ValidationError as exc:
        raise InvalidCredentials(
            f"Invalid {provider.value} credentials: {exc.error_count()} field error(s)"
        ) from exc


__all__ = [
    "ProviderName",
    "AWSApiKey",
    "CREDENTIALS_MODEL_MAP",
    "parse_account_credentials",
]
