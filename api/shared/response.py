from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorBody(BaseModel):
    code: str = Field(description="Machine readable error code", examples=["NOT_FOUND"])
    message: str = Field(description="Human readable error message")


class ErrorEnvelope(BaseModel):
    error: ErrorBody


class ResponseModel(BaseModel, Generic[T]):
    data: Optional[T] = Field(description="Response data", default=None)

    @classmethod
    def success(cls, data: Optional[T] = None) -> "ResponseModel[T]":
        """Create a successful response."""
        return cls(data=data)

    @staticmethod
    def error(code: str, message: str) -> ErrorEnvelope:
        """Create an error envelope."""
        return ErrorEnvelope(error=ErrorBody(code=code, message=message))
