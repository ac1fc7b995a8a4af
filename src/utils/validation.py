"""Client-side validation helpers; failures never reach the network."""

import re
from typing import Optional

from src.utils.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


def require(value: Optional[str], field: str, label: str) -> str:
    """Return the stripped value or raise if it is blank."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{label} is required", field=field)
    return str(value).strip()


def validate_email(email: Optional[str]) -> str:
    email = require(email, "email", "Email")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Please enter a valid email address", field="email")
    return email


def validate_password(password: Optional[str], confirm: Optional[str] = None) -> str:
    if not password:
        raise ValidationError("Password is required", field="password")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password"
        )
    if confirm is not None and confirm != password:
        raise ValidationError("Passwords do not match", field="confirm_password")
    return password
