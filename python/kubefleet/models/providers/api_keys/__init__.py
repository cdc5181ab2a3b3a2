"""
models/providers/api_keys/__init__.py

Re-exports the per-provider credential models.
"""

from kubefleet.models.providers.api_keys.aws import AWSApiKey

__all__ = ["AWSApiKey"]
