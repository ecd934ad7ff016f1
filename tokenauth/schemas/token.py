# tokenauth/schemas/token.py
from datetime import datetime
from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=160)
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1, max_length=255)


class SubjectOut(BaseModel):
    id: str          # external_id, nunca o id interno
    username: str


class TokenPairOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    refresh_expires_at: datetime
    subject: SubjectOut


class AccessTokenOut(BaseModel):
    token: str


class ErrorOut(BaseModel):
    code: str
    message: str
