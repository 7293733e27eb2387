from pydantic import BaseModel


class AuthMessageResponse(BaseModel):
    """Generic auth message response."""

    message: str


class AuthProvidersResponse(BaseModel):
    google: bool = False
