"""Shared Pydantic schemas."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    code: str
    message: str


class MessageResponse(BaseModel):
    message: str
