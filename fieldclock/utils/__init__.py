from fieldclock.utils.authenticateUser import authenticate_user, bcrypt_context
from fieldclock.utils.createAccessToken import create_access_token
from fieldclock.utils.decodeAccessToken import decode_token

__all__ = ["authenticate_user", "bcrypt_context", "create_access_token", "decode_token"]
