"""
Project: Restaurant POS Service (RPOS)

Description:
Application configuration. Static Flask settings live on Config; values
that can be overridden from the environment (or a .env file) are read and
type-checked by Settings, then merged in by the app factory.
"""

from functools import lru_cache
from typing import FrozenSet

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    SECRET_KEY: str = "change-me-in-production"
    DATABASE_URL: str = "sqlite:///pos.db"

    # bearer tokens issued by /login, in seconds
    TOKEN_MAX_AGE: int = 12 * 60 * 60

    LOG_LEVEL: str = "INFO"
    SOCKETIO_ASYNC_MODE: str = "threading"

    # comma separated; actions whose audit entry must be written for the mutation to commit
    STRICT_AUDIT_ACTIONS: str = "cancel_order,close_shift,void_item"

    @property
    def strict_audit_actions(self) -> FrozenSet[str]:
        return frozenset(part.strip() for part in self.STRICT_AUDIT_ACTIONS.split(",") if part.strip())

    def flask_config(self) -> dict:
        return {
            "SECRET_KEY": self.SECRET_KEY,
            "SQLALCHEMY_DATABASE_URI": self.DATABASE_URL,
            "TOKEN_MAX_AGE": self.TOKEN_MAX_AGE,
            "LOG_LEVEL": self.LOG_LEVEL.upper(),
            "SOCKETIO_ASYNC_MODE": self.SOCKETIO_ASYNC_MODE,
            "STRICT_AUDIT_ACTIONS": self.strict_audit_actions,
        }


@lru_cache()
def get_settings() -> Settings:
    return Settings()


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TOKEN_SALT = "rpos-bearer"
