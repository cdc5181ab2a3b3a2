"""
filename: kubefleet/models/providers/api_keys/aws.py

Provides the AWSApiKey pydantic model for credentials.
"""

from typing import Dict, Optional
from pydantic import BaseModel


class AWSApiKey(BaseModel):
    """Pydantic model for AWSApiKey credentials."""

    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None

    def to_session_kwargs(self) -> Dict[str, str]:
        """Converts credentials to keyword arguments for a boto3 Session.

        Returns:
            Dict[str, str]: aws_access_key_id, aws_secret_access_key and,
            when present, aws_session_token.
        """
        kwargs = {
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
        }
        if self.session_token:
            kwargs["aws_session_token"] = self.session_token
        return kwargs


__all__ = ["AWSApiKey"]
