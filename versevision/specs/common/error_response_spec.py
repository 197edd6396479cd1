from pydantic import BaseModel, Field
from typing import Literal, Optional, Any

from versevision.specs.common.errors import VerseVisionError

class ErrorResponse(BaseModel):
    success: Literal[False] = False
    message: str = Field(..., description="Error message")
    errorCode: Optional[str] = Field(None, description="Application-specific error code")
    details: Optional[Any] = Field(None, description="Additional error details")

    @classmethod
    def from_error(cls, exc: VerseVisionError) -> "ErrorResponse":
        body = exc.to_dict()
        return cls(message=body["message"], errorCode=body["code"], details=body["details"] or None)
