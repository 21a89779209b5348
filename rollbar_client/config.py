"""Configuration management using Pydantic Settings."""

import re
import socket
import sys
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_ENDPOINT = "https://api.rollbar.com/api/1/item/"


class Settings(BaseSettings):
    """
    Client settings loaded from keyword arguments or ROLLBAR_* environment variables.

    Instances are frozen. Build a new one (or use ``model_copy(update=...)``)
    instead of mutating a client's settings.
    """

    # Authentication
    access_token: Optional[str] = None  # post_server_item token, required at send time

    # Endpoint
    endpoint: str = DEFAULT_ENDPOINT
    timeout: float = 10.0  # seconds per POST

    # Item metadata
    environment: str = "development"
    platform: str = Field(default_factory=lambda: sys.platform)
    framework: Optional[str] = None
    code_version: Optional[str] = None

    # Server
    server_host: Optional[str] = Field(default_factory=socket.gethostname)
    server_root: Optional[str] = None  # application root, no trailing slash
    server_branch: Optional[str] = None

    # Stack capture
    stack_skip: int = Field(default=2, ge=0)  # capturer frame + Call.do
    use_exception_traceback: bool = True

    # Request sanitizing
    capture_ip: bool = False  # False sends "$remote_ip" and lets the server fill it in
    sensitive_headers: str = "Authorization"
    sensitive_fields: str = "password|secret|token"

    # Logging
    debug: bool = False
    log_level: str = "INFO"

    @field_validator("access_token", "framework", "code_version", "server_root", "server_branch", mode="before")
    @classmethod
    def parse_empty_as_none(cls, v: Any) -> Any:
        """Treat empty strings from the environment as unset."""
        if v == "":
            return None
        return v

    @field_validator("code_version")
    @classmethod
    def check_code_version(cls, v: Optional[str]) -> Optional[str]:
        """Rollbar accepts code versions up to 40 characters."""
        if v is not None and len(v) > 40:
            raise ValueError("code_version must be at most 40 characters")
        return v

    @field_validator("environment")
    @classmethod
    def check_environment(cls, v: str) -> str:
        """Environment names are limited to 255 characters."""
        if not v:
            raise ValueError("environment must not be empty")
        if len(v) > 255:
            raise ValueError("environment must be at most 255 characters")
        return v

    @field_validator("sensitive_headers", "sensitive_fields")
    @classmethod
    def check_pattern(cls, v: str) -> str:
        """Patterns are compiled by the sanitizer, reject broken ones early."""
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid pattern {v!r}: {e}") from e
        return v

    class Config:
        env_prefix = "ROLLBAR_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        frozen = True
