"""
Credential Encryption

HR system credentials are stored as a single Fernet-encrypted JSON blob per
integration config.
"""

import json
import logging

from cryptography.fernet import Fernet, InvalidToken

from integrations.base import HRCredentials
from integrations.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class CredentialCipher:
    """Encrypts and decrypts HRCredentials for storage."""

    def __init__(self, encryption_key: str | bytes):
        if isinstance(encryption_key, str):
            encryption_key = encryption_key.encode()
        self.cipher = Fernet(encryption_key)

    def encrypt(self, credentials: HRCredentials) -> bytes:
        """Encrypt credentials (camelCase JSON, unset fields dropped)."""
        payload = credentials.model_dump(by_alias=True, exclude_none=True)
        return self.cipher.encrypt(json.dumps(payload).encode())

    def decrypt(self, encrypted: bytes) -> HRCredentials:
        """
        Decrypt a stored credentials blob.

        Raises:
            ConfigurationError: The blob was written with a different key or is corrupt
        """
        try:
            raw = self.cipher.decrypt(encrypted)
        except InvalidToken:
            logger.error("Stored HR credentials could not be decrypted")
            raise ConfigurationError("Stored HR credentials could not be decrypted") from None
        return HRCredentials.model_validate(json.loads(raw))

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()
