"""
API key management for Rosetta.

Keys are looked up in this order:
1. Environment variable (preferred for CI/production)
2. OS keychain via keyring (secure local storage)
3. The ``api_key`` entry of the settings file

Usage:
    from rosetta.keys import KeyManager

    km = KeyManager()
    km.set_key("openai", "sk-...")
    key = km.get_key("openai")
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

# Supported services and their env var names
SERVICES = {
    "openai": "OPENAI_API_KEY",
}


@dataclass
class KeyInfo:
    """Information about an API key."""
    service: str
    is_set: bool
    source: str  # 'env', 'keyring', 'config', 'none'
    masked_value: str


class KeyManager:
    """Look up and store API keys.

    Args:
        config_keys: Keys read from the settings file, by service name
    """

    SERVICE_NAME = "Rosetta"

    def __init__(self, config_keys: dict[str, str] | None = None):
        self.config_keys = {k.lower(): v for k, v in (config_keys or {}).items() if v}

    def _env_var(self, service: str) -> str:
        return SERVICES.get(service, f"{service.upper()}_API_KEY")

    def _from_keyring(self, service: str) -> Optional[str]:
        try:
            return keyring.get_password(self.SERVICE_NAME, service)
        except KeyringError as e:
            logger.debug("Keyring unavailable: %s", e)
            return None

    def _lookup(self, service: str) -> tuple[Optional[str], str]:
        service = service.lower()
        if env_val := os.getenv(self._env_var(service)):
            return env_val, "env"
        if key := self._from_keyring(service):
            return key, "keyring"
        if key := self.config_keys.get(service):
            return key, "config"
        return None, "none"

    def get_key(self, service: str) -> Optional[str]:
        """Get API key for a service, or None if it is not configured."""
        key, _ = self._lookup(service)
        return key

    def require_key(self, service: str) -> str:
        key = self.get_key(service)
        if not key:
            raise ValueError(
                f"API key for '{service}' not found. "
                f"Set {self._env_var(service.lower())} environment variable "
                f"or run: rosetta keys set {service}"
            )
        return key

    def set_key(self, service: str, key: str) -> str:
        """Store an API key in the OS keychain.

        Returns:
            Storage location used
        """
        keyring.set_password(self.SERVICE_NAME, service.lower(), key)
        return "keyring"

    def delete_key(self, service: str) -> bool:
        """Delete a stored API key. Returns False if none was stored."""
        try:
            keyring.delete_password(self.SERVICE_NAME, service.lower())
        except PasswordDeleteError:
            return False
        return True

    def get_key_info(self, service: str) -> KeyInfo:
        key, source = self._lookup(service)
        return KeyInfo(
            service=service.lower(),
            is_set=key is not None,
            source=source,
            masked_value=self._mask_key(key) if key else "",
        )

    def list_keys(self) -> list[KeyInfo]:
        return [self.get_key_info(service) for service in SERVICES]

    @staticmethod
    def _mask_key(key: str) -> str:
        """Mask a key for display (show first 4 and last 4 chars)."""
        if len(key) <= 12:
            return "*" * len(key)
        return f"{key[:4]}...{key[-4:]}"
