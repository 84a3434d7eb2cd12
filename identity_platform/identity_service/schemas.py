from pydantic import BaseModel, ConfigDict, Field

from typing import Optional


class AuthRequest(BaseModel):
    email: str
    password: str


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")


class TokenResponse(BaseModel):
    token: str


class ValidateTokenRequest(BaseModel):
    token: str


class ValidateTokenResponse(BaseModel):
    email: str


class IdentityResponse(BaseModel):
    subject_id: str
    email: str


class ErrorResponse(BaseModel):
    """
    Schema for error responses.
    """
    detail: str = Field(..., description="Error message")
    error_type: Optional[str] = Field(None, description="Type of error")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "detail": "invalid credentials",
                    "error_type": "unauthenticated"
                }
            ]
        }
    }
