import os
from dotenv import load_dotenv

if os.getenv("ENVIRONMENT") == "development":
    load_dotenv()


def _as_bool(value, default):
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_float(value):
    if value in (None, ""):
        return None
    return float(value)


class Settings:
    """Runtime configuration. Build with ``Settings.from_env()`` or pass overrides directly."""

    def __init__(
        self,
        database_url="sqlite:///./fieldclock.db",
        secret_key="dev-secret-key-change-in-production",
        algorithm="HS256",
        access_token_minutes=20,
        media_root="./media",
        media_url="/media",
        org_timezone="America/New_York",
        allow_clock_in_overwrite=True,
        presence_timeout_seconds=120,
        cors_origins=("*",),
        log_level="INFO",
        kiosk_latitude=None,
        kiosk_longitude=None,
        kiosk_camera_index=0,
    ):
        self.database_url = database_url
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_minutes = access_token_minutes
        self.media_root = media_root
        self.media_url = media_url.rstrip("/")
        self.org_timezone = org_timezone
        self.allow_clock_in_overwrite = allow_clock_in_overwrite
        self.presence_timeout_seconds = presence_timeout_seconds
        self.cors_origins = list(cors_origins)
        self.log_level = log_level
        self.kiosk_latitude = kiosk_latitude
        self.kiosk_longitude = kiosk_longitude
        self.kiosk_camera_index = kiosk_camera_index

    @classmethod
    def from_env(cls):
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            database_url=os.getenv("DB_URL_STRING", "sqlite:///./fieldclock.db"),
            secret_key=os.getenv("SECRET_KEY", "dev-secret-key-change-in-production"),
            algorithm=os.getenv("ALGORITHM", "HS256"),
            access_token_minutes=int(os.getenv("ACCESS_TOKEN_MINUTES", "20")),
            media_root=os.getenv("MEDIA_ROOT", "./media"),
            media_url=os.getenv("MEDIA_URL", "/media"),
            org_timezone=os.getenv("ORG_TIMEZONE", "America/New_York"),
            allow_clock_in_overwrite=_as_bool(
                os.getenv("ALLOW_CLOCK_IN_OVERWRITE"), True
            ),
            presence_timeout_seconds=int(os.getenv("PRESENCE_TIMEOUT_SECONDS", "120")),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            kiosk_latitude=_as_float(os.getenv("KIOSK_LATITUDE")),
            kiosk_longitude=_as_float(os.getenv("KIOSK_LONGITUDE")),
            kiosk_camera_index=int(os.getenv("KIOSK_CAMERA_INDEX", "0")),
        )
