from kvauth.errors import ValidationError

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_BYTES = 72  # bcrypt ignores or rejects anything longer


def validate_password(password: str) -> None:
    """Validate password meets requirements.

    Requirements:
    - At least 8 characters
    - At most 72 bytes once UTF-8 encoded

    Raises:
        ValidationError: If password doesn't meet requirements
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError("Password is too long")
