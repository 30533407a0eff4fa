from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field, field_validator
from utils.timeutils import utcnow, ensure_utc


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    device_id_to_revoke: str | None = None
    client_id: str | None = None

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        if not value:
            raise ValueError('Password cannot be empty')
        return value

    @field_validator('device_id_to_revoke', 'client_id')
    @classmethod
    def blank_to_none(cls, value):
        if value is not None and not value.strip():
            return None
        return value


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(min_length=10, max_length=500)

    @field_validator('refresh_token')
    @classmethod
    def validate_token(cls, value):
        if not value.strip():
            raise ValueError('Refresh token cannot be empty')
        return value


class LogoutRequest(BaseModel):
    refresh_token: str | None = None
    logout_all_devices: bool = False


class TokenResponse(BaseModel):
    token: str
    type: str
    expires_at: datetime
    created_at: datetime

    @computed_field
    @property
    def is_expired(self) -> bool:
        return utcnow() > ensure_utc(self.expires_at)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    role: str


class AuthResponse(BaseModel):
    user: UserResponse
    access_token: TokenResponse
    refresh_token: TokenResponse
    authenticated_at: datetime

    @computed_field
    @property
    def expires_in(self) -> int:
        """Seconds until the access token expires."""
        remaining = ensure_utc(self.access_token.expires_at) - utcnow()
        return max(int(remaining.total_seconds()), 0)


class DeviceInfo(BaseModel):
    id: str
    device_name: str
    login_date: datetime
    last_activity: datetime


class ValidateTokenResponse(BaseModel):
    valid: bool
