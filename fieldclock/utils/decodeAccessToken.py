from fastapi import HTTPException, status
from jose import JWTError, jwt


def decode_token(token: str, secret_key: str, algorithm: str = "HS256"):
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user.",
        )

    email = payload.get("sub")
    username = payload.get("username")
    role = payload.get("role")
    employee_id = payload.get("employee_id")

    if not all([email, username, role, employee_id]):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user",
        )

    return {
        "email": email,
        "username": username,
        "role": role,
        "employee_id": employee_id,
    }
