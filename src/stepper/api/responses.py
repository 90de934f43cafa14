"""
Response envelope and the camelCase base model shared by every DTO.
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Serializes field names as camelCase while accepting either form on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[T]):
    success: bool
    data: Optional[T] = None
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, data=None) -> "ApiResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, *errors: str) -> "ApiResponse":
        return cls(success=False, errors=list(errors))


class MessageResponse(CamelModel):
    message: str


def error_content(*errors: str) -> dict:
    """JSON body for responses built outside the router (middleware, handlers)."""
    return ApiResponse.fail(*errors).model_dump(by_alias=True)
