import os
from enum import Enum
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class AuthMode(str, Enum):
    REQUIRE_AUTH = "require_auth"
    ANONYMOUS = "anonymous"


class Config:
    """Settings read from the environment (or a .env file)"""

    def __init__(self, **overrides):
        self.DATABASE_URL = os.environ.get("DATABASE_URL") or "sqlite:///loans.db"
        self.AUTH_MODE = AuthMode(
            (os.environ.get("AUTH_MODE") or AuthMode.REQUIRE_AUTH.value).lower()
        )
        self.TOKEN_LIFETIME_HOURS = int(os.environ.get("TOKEN_LIFETIME_HOURS") or 168)
        self.LOG_LEVEL = (os.environ.get("LOG_LEVEL") or "INFO").upper()
        self.DEFAULT_OWNER_EMAIL = (
            os.environ.get("DEFAULT_OWNER_EMAIL") or "default-user@localhost"
        )

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise ValueError(f"Unknown config option {key}")
            if key == "AUTH_MODE":
                value = AuthMode(value)
            setattr(self, key, value)

    @property
    def anonymous(self) -> bool:
        return self.AUTH_MODE is AuthMode.ANONYMOUS


@lru_cache()
def get_config() -> Config:
    return Config()
