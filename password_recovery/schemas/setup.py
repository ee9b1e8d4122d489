from pydantic import BaseModel, Field


class SetupStatusResponse(BaseModel):
    setup: bool
    db_configured: bool
    tables_created: bool
    smtp_configured: bool


class SetupLoginRequest(BaseModel):
    user: str = Field(..., min_length=1)
    password: str = Field(..., alias="pass", min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
