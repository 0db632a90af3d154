from datetime import datetime, timedelta, timezone

from jose import jwt
from pydantic import EmailStr


def create_access_token(
    email: EmailStr,
    username: str,
    role: str,
    employee_id: str,
    expires_delta: timedelta,
    secret_key: str,
    algorithm: str = "HS256",
):
    data_to_encode = {
        "sub": email,
        "username": username,
        "role": role,
        "employee_id": employee_id,
    }
    expires = datetime.now(timezone.utc) + expires_delta
    data_to_encode.update({"exp": expires})
    return jwt.encode(data_to_encode, secret_key, algorithm=algorithm)
