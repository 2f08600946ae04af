"""Pydantic schemas for login attempt throttling."""

from pydantic import BaseModel, Field


class LoginCheckRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class LoginCheckResponse(BaseModel):
    allowed: bool
    remaining_attempts: int


class LoginAttemptCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    successful: bool = False


class LoginAttemptRecorded(BaseModel):
    success: bool = True
