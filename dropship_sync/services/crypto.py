"""Encryption of stored secrets (the supplier API password)."""
import base64
import hashlib

import structlog
from cryptography.fernet import Fernet, InvalidToken

logger = structlog.get_logger(__name__)


class SecretCipher:
    """Symmetric encryption keyed by the installation secret.

    With a blank secret values are stored as given, so an installation
    without SETTINGS_ENCRYPTION_KEY still works (unencrypted).
    """

    def __init__(self, secret: str):
        self._fernet = None
        if secret:
            key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())
            self._fernet = Fernet(key)

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, plain: str) -> str:
        if not plain or self._fernet is None:
            return plain
        return self._fernet.encrypt(plain.encode("utf-8")).decode("ascii")

    def decrypt(self, encoded: str) -> str:
        """Decrypt a stored value; an undecryptable value yields ''."""
        if not encoded or self._fernet is None:
            return encoded
        try:
            return self._fernet.decrypt(encoded.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError):
            logger.warning("secret_decrypt_failed")
            return ""
