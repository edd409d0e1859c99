'''
Configuration for the uptime display client.

Defaults point at the sample uptime server on localhost:8088. Every field can
be overridden through an UPTIME_* environment variable.
'''

import logging
import os
from enum import Enum
from typing import Mapping, Optional
from urllib.parse import urlencode, urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Constants
DEFAULT_BASE_URL = "http://localhost:8088"
UPTIME_PATH = "/uptime"
UPTIME_ELEMENT_ID = "uptime"
PLACEHOLDER = "whatever"

ENV_VARS = {
    "UPTIME_BASE_URL": "base_url",
    "UPTIME_PATH": "path",
    "UPTIME_UNITS": "units",
    "UPTIME_RECONNECT": "reconnection_time",
    "UPTIME_CONNECT_TIMEOUT": "connect_timeout",
    "UPTIME_LOG_LEVEL": "log_level",
}

# Enums
class Units(str, Enum):
    '''Units the server reports uptime in.'''
    SECONDS = "s"
    MINUTES = "m"

class ClientSettings(BaseModel):
    '''Settings for one uptime display client.'''
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Scheme, host and port of the server (e.g., 'http://localhost:8088')",
        min_length=1
    )
    path: str = Field(
        default=UPTIME_PATH,
        description="Path of the event stream on the server"
    )
    units: Optional[Units] = Field(
        default=None,
        description="Ask the server for 's' (seconds) or 'm' (minutes); server default when unset"
    )
    element_id: str = Field(
        default=UPTIME_ELEMENT_ID,
        description="Id of the display element the latest value is written to",
        min_length=1
    )
    placeholder: str = Field(
        default=PLACEHOLDER,
        description="Shown until the first value arrives"
    )
    reconnection_time: float = Field(
        default=3.0,
        description="Seconds to wait before reconnecting unless the server sends 'retry:'",
        gt=0
    )
    connect_timeout: float = Field(
        default=10.0,
        description="Seconds allowed for establishing the connection",
        gt=0
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level name (DEBUG, INFO, WARNING, ERROR)"
    )

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"Base URL must be an http(s) URL with a host, got '{v}'")
        return v.rstrip("/")

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("Path must start with '/'")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level '{v}'")
        return level

    @property
    def stream_url(self) -> str:
        url = self.base_url + self.path
        if self.units is not None:
            url += "?" + urlencode({"units": self.units.value})
        return url

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientSettings":
        '''Build settings from UPTIME_* variables; unset or empty ones keep the defaults.'''
        if environ is None:
            environ = os.environ
        values = {field: environ[name] for name, field in ENV_VARS.items() if environ.get(name)}
        return cls(**values)
