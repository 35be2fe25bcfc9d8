import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator

# Password complexity requirements
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 72  # bcrypt ignores anything past 72 bytes
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class UserRegister(BaseModel):
    """User registration request"""

    email: str = Field(..., max_length=254)
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH
    )
    full_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("password")
    @classmethod
    def validate_password_complexity(cls, v: str) -> str:
        """
        Validate password meets complexity requirements:
        - At least 8 characters
        - At least one lowercase letter
        - At least one uppercase letter
        - At least one digit
        """
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain a lowercase letter")

        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain an uppercase letter")

        if not re.search(r"\d", v):
            raise ValueError("Password must contain a digit")

        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid e-mail address")
        return v


class UserLogin(BaseModel):
    """Login request"""

    email: str
    password: str


class Token(BaseModel):
    """Access token response"""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class TokenData(BaseModel):
    """JWT payload"""

    user_id: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None


class UserOut(BaseModel):
    """Public user information"""

    id: str
    email: str
    full_name: str

    class Config:
        from_attributes = True


class UserWithToken(BaseModel):
    """Successful login/registration response (user + token)"""

    user: UserOut
    token: Token
