"""
Configuration for pasty token services.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Optional

from ..util.config import (
    ENV_PREFIX,
    get_config_value,
    load_config_file,
    load_config_from_env,
    parse_duration_string,
    validate_config,
)
from .types import Purpose

logger = logging.getLogger(__name__)

KNOWN_KEYS = frozenset({
    'purpose', 'issuer', 'audience', 'identifier',
    'leeway', 'default_expiry', 'secret_key', 'public_key', 'symmetric_key',
})

SCHEMA = {
    'purpose': {'required': True, 'type': str, 'choices': [p.value for p in Purpose]},
    'issuer': {'type': str},
    'audience': {'type': str},
    'identifier': {'type': str},
    'leeway': {'type': timedelta, 'min': timedelta(0)},
    'default_expiry': {'type': timedelta, 'min': timedelta(seconds=1)},
}


@dataclass
class TokenServiceConfig:
    """Configuration for a TokenService"""
    purpose: str = Purpose.PUBLIC.value
    issuer: Optional[str] = None
    audience: Optional[str] = None
    identifier: Optional[str] = None
    leeway: timedelta = field(default_factory=lambda: timedelta(0))
    default_expiry: timedelta = field(default_factory=lambda: timedelta(hours=1))
    secret_key_pem: Optional[str] = None
    public_key_pem: Optional[str] = None
    symmetric_key: Optional[str] = None

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "TokenServiceConfig":
        """Create configuration from environment variables"""
        unknown = sorted(set(load_config_from_env(prefix)) - KNOWN_KEYS)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

        return cls(
            purpose=get_config_value('purpose', Purpose.PUBLIC.value, env_prefix=prefix),
            issuer=get_config_value('issuer', env_prefix=prefix) or None,
            audience=get_config_value('audience', env_prefix=prefix) or None,
            identifier=get_config_value('identifier', env_prefix=prefix) or None,
            leeway=get_config_value('leeway', timedelta(0), timedelta, prefix),
            default_expiry=get_config_value('default_expiry', timedelta(hours=1), timedelta, prefix),
            secret_key_pem=get_config_value('secret_key', env_prefix=prefix) or None,
            public_key_pem=get_config_value('public_key', env_prefix=prefix) or None,
            symmetric_key=get_config_value('symmetric_key', env_prefix=prefix) or None,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TokenServiceConfig":
        """
        Create configuration from a mapping using the same keys as the
        environment. Durations may be strings such as '30s' or seconds.
        """
        unknown = sorted(set(data) - KNOWN_KEYS)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

        return cls(
            purpose=data.get('purpose', Purpose.PUBLIC.value),
            issuer=data.get('issuer') or None,
            audience=data.get('audience') or None,
            identifier=data.get('identifier') or None,
            leeway=_duration(data.get('leeway'), timedelta(0)),
            default_expiry=_duration(data.get('default_expiry'), timedelta(hours=1)),
            secret_key_pem=data.get('secret_key') or None,
            public_key_pem=data.get('public_key') or None,
            symmetric_key=data.get('symmetric_key') or None,
        )

    @classmethod
    def from_file(cls, file_path: str) -> "TokenServiceConfig":
        """Create configuration from a JSON or YAML file"""
        return cls.from_dict(load_config_file(file_path))

    def validate(self) -> bool:
        """Validate the configuration"""
        purpose = self.purpose
        if isinstance(purpose, Purpose):
            purpose = purpose.value
        elif isinstance(purpose, str):
            purpose = purpose.strip().lower()

        values = {
            'purpose': purpose,
            'issuer': self.issuer,
            'audience': self.audience,
            'identifier': self.identifier,
            'leeway': self.leeway,
            'default_expiry': self.default_expiry,
        }
        errors = validate_config(values, SCHEMA)
        if errors:
            raise ValueError("; ".join(errors))
        return True


def _duration(value: Any, default: timedelta) -> timedelta:
    if value is None:
        return default
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    return parse_duration_string(value)
