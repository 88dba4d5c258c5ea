from __future__ import annotations

from pydantic.v1 import BaseModel, Field, validator


class ServiceAccountCredential(BaseModel):
    """Represents the service account the client authenticates as."""

    project_id: str = Field(..., min_length=1, description="The project that owns the database")
    client_email: str = Field(..., min_length=1, description="The service account email")
    private_key: str = Field(..., min_length=1, description="The PEM encoded private key")

    class Config:
        allow_mutation = False

    @validator("private_key")
    def normalize_newlines(cls, value: str) -> str:
        """Environment variables often carry the key with literal ``\\n`` escapes."""
        return value.replace("\\n", "\n")

    def __repr__(self) -> str:
        return f"ServiceAccountCredential(project_id={self.project_id!r}, client_email={self.client_email!r})"

    __str__ = __repr__


class AccessToken(BaseModel):
    """Represents a bearer token obtained from the token endpoint."""

    token: str = Field(..., description="The bearer token string")
    expires_at: float = Field(..., description="The epoch second after which the token must not be used")

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at
