"""Authentication flow configuration."""

import logging
import os
from pathlib import Path

from dotenv import dotenv_values
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = "CONNECTA_"


class AuthFlowConfig(BaseModel):
    """
    Authentication flow configuration.

    Passed into the flow controller at construction. The state machine
    never reads environment or global state itself.
    """

    # Verification codes
    bypass_code_validation: bool = Field(
        default=False,
        description="Accept any 6-digit code. Development/testing only.",
    )
    code_length: int = Field(
        default=6,
        description="Digits in a one-time code",
        ge=6,
        le=6,
    )
    resend_cooldown_seconds: int = Field(
        default=60,
        description="Minimum wait before a new code may be requested",
        ge=10,
        le=600,
    )

    # Trusted devices
    trusted_device_ttl_days: int = Field(
        default=30,
        description="How long a trusted device may skip the second factor",
        ge=1,
        le=90,
    )
    device_label_max_length: int = Field(
        default=80,
        description="User agent is condensed to this many characters in labels",
        ge=20,
        le=256,
    )

    # Registration
    min_password_length: int = Field(
        default=8,
        description="Minimum password length at registration",
        ge=8,
        le=128,
    )

    # Application
    storage_prefix: str = Field(
        default="connecta",
        description="Prefix for every persisted key",
        min_length=1,
    )
    app_name: str = Field(
        default="Connecta",
        description="Application name for delivered messages",
    )


def load_flow_config(env_file: Path | None = None) -> AuthFlowConfig:
    """Build config from CONNECTA_* variables (process env wins over env_file).

    Called once at the application boundary.

    Raises:
        pydantic.ValidationError: If a value is out of bounds.
    """
    values: dict[str, str | None] = {}
    if env_file is not None:
        values.update(dotenv_values(env_file))
    values.update(os.environ)

    fields = {}
    for name in AuthFlowConfig.model_fields:
        raw = values.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None:
            fields[name] = raw

    config = AuthFlowConfig(**fields)
    if config.bypass_code_validation:
        logger.warning("Code validation bypass is ENABLED - never use in production")
    return config
