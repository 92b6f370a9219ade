from pydantic import BaseModel, EmailStr, model_validator


class LoginRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {"email": "cashier@example.com", "password": "Secret123"},
                {"username_or_email": "cashier01", "password": "Secret123"},
            ]
        }
    }

    email: EmailStr | None = None
    username_or_email: str | None = None
    password: str

    @model_validator(mode="after")
    def ensure_identifier(self):
        if not self.email and not self.username_or_email:
            raise ValueError("email or username_or_email is required")
        return self


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    must_change_password: bool
    trace_id: str


class UserResponse(BaseModel):
    id: str
    username: str | None = None
    email: str | None = None
    tenant_id: str
    store_id: str | None = None
    terminal_id: str | None = None
    role: str
    status: str | None = None
    is_active: bool | None = None
    permissions: list[str] = []
    trace_id: str
