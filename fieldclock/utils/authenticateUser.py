from passlib.context import CryptContext
from sqlalchemy import or_

from fieldclock.models import User

bcrypt_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def authenticate_user(login: str, password: str, db):
    user = (
        db.query(User)
        .filter(or_(User.email == login, User.employee_id == login))
        .first()
    )

    if user is None or not bcrypt_context.verify(password, user.hashed_password):
        return False
    return user
