import logging
from datetime import timedelta
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from starlette import status

from fieldclock.api.deps import db_dependency, settings_dependency
from fieldclock.models import User
from fieldclock.schemas.accessToken import Token
from fieldclock.schemas.user import CreateUserRequest
from fieldclock.utils import authenticate_user, bcrypt_context, create_access_token, decode_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

oauth2_bearer = OAuth2PasswordBearer(tokenUrl="/auth/token/")
optional_bearer = OAuth2PasswordBearer(tokenUrl="/auth/token/", auto_error=False)

PRIVILEGED_ROLES = ("admin", "manager")


# --------------------------------------------------------------------------------------
@router.post("/create_user/", status_code=status.HTTP_201_CREATED)
async def create_user(
    db: db_dependency,
    settings: settings_dependency,
    new_user: CreateUserRequest,
    token: Annotated[Optional[str], Depends(optional_bearer)],
):
    """Registers a user. Admin and manager accounts can only be created by an admin,
    except for the very first account of a fresh installation."""
    if new_user.role in PRIVILEGED_ROLES and db.query(User).first() is not None:
        caller = decode_token(token, settings.secret_key, settings.algorithm) if token else None
        if caller is None or caller["role"] != "admin":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only admins can create admin or manager accounts",
            )

    existing_user = (
        db.query(User)
        .filter(
            or_(
                User.employee_id == new_user.employee_id,
                User.email == new_user.email,
            )
        )
        .first()
    )
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Employee ID/Email account already exists. Login?",
        )
    try:
        user = User(
            email=new_user.email,
            employee_id=new_user.employee_id,
            username=new_user.username,
            hashed_password=bcrypt_context.hash(new_user.password),
            role=new_user.role,
        )

        db.add(user)
        db.commit()
        db.refresh(user)

        return {"message": "User created successfully"}
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating user {new_user.employee_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Internal error. Please try again or contact admin.",
        )


@router.post("/token/", response_model=Token)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: db_dependency,
    settings: settings_dependency,
):
    existing_user = (
        db.query(User)
        .filter(
            or_(
                User.email == form_data.username, User.employee_id == form_data.username
            )
        )
        .first()
    )

    if not existing_user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User not registered yet"
        )

    authenticated_user = authenticate_user(form_data.username, form_data.password, db)
    if not authenticated_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email or password incorrect",
        )

    token = create_access_token(
        authenticated_user.email,
        authenticated_user.username,
        authenticated_user.role,
        authenticated_user.employee_id,
        timedelta(minutes=settings.access_token_minutes),
        settings.secret_key,
        settings.algorithm,
    )
    return {"access_token": token, "token_type": "bearer"}


def get_current_user(settings: settings_dependency, token: str = Depends(oauth2_bearer)):
    return decode_token(token, settings.secret_key, settings.algorithm)


def get_current_admin_user(current_user: dict = Depends(get_current_user)):
    if current_user["role"] != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions"
        )
    return current_user


def get_current_manager_user(current_user: dict = Depends(get_current_user)):
    if current_user["role"] not in PRIVILEGED_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions"
        )
    return current_user
