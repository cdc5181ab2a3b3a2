"""
kubefleet/models/validator.py

Validates untyped documents (parsed YAML, CLI input) against a pydantic-based
type, reporting failures as InvalidConfig.
"""

from typing import Any, Type, TypeVar
from pydantic import ValidationError, TypeAdapter

from kubefleet.errors import InvalidConfig

T = TypeVar("T")


def validate_type(obj: Any, expected_type: Type[T], *, source: str = "document") -> T:
    """
    Validates that a given Python object conforms to the expected pydantic-based type.

    Args:
        obj (Any): The object to validate.
        expected_type (Type[T]): The type (pydantic or otherwise) to validate against.
        source (str): Where the object came from, used in the error message.

    Returns:
        T: The validated object, cast to the expected type.

    Raises:
        InvalidConfig: If validation fails.
    """
    try:
        return TypeAdapter(expected_type).validate_python(obj)
    except ValidationError as e:
        name = getattr(expected_type, "__name__", str(expected_type))
        raise InvalidConfig(f"Invalid {name} in {source}: {e}") from e
