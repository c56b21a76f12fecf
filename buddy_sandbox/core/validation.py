"""Request and response payload validation."""

from typing import Any, Mapping, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..models.errors import ValidationError
from .http_client import HttpResponse

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_request(model: Type[ModelT], data: Union[ModelT, Mapping[str, Any]]) -> ModelT:
    """Validate an outgoing payload before any network I/O.

    Raises:
        ValidationError: ``data`` does not satisfy ``model``
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(
            f"Invalid {model.__name__}", e.errors()
        ) from e


def parse_response(model: Type[ModelT], response: HttpResponse) -> ModelT:
    """Validate a response body, even when the HTTP status was a success.

    Raises:
        ValidationError: the body does not satisfy ``model``; carries the
            response status code
    """
    try:
        return model.model_validate(response.data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(
            "Response validation failed", e.errors(), status_code=response.status_code
        ) from e
