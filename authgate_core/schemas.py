"""
Request Schemas
===============
Pydantic models for validating flow input before it reaches the core.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RegistrationRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    gender: Optional[str] = Field(default=None, max_length=16)
    birth_date: Optional[date] = None

    @field_validator("birth_date")
    @classmethod
    def birth_date_in_past(cls, value: Optional[date]) -> Optional[date]:
        if value is not None and value >= date.today():
            raise ValueError("must be in the past")
        return value


def describe_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors into {field, message} pairs safe to serialize."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
