"""
At-rest encryption for SNMP secrets (community strings, v3 auth/priv passwords).

Fernet (AES-128-CBC + HMAC-SHA256) from the cryptography library, keyed by a
SHA-256 digest of settings.SECRET_KEY. Rotating SECRET_KEY makes previously
stored secrets unreadable.
"""
import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from netscope.config import settings

logger = logging.getLogger(__name__)

_fernet = Fernet(base64.urlsafe_b64encode(hashlib.sha256(settings.SECRET_KEY.encode()).digest()))


def encrypt_secret(plaintext: Optional[str]) -> Optional[str]:
    """Encrypt a secret for storage. Empty values are stored as NULL."""
    if not plaintext:
        return None
    return _fernet.encrypt(plaintext.encode()).decode()


def decrypt_secret(ciphertext: Optional[str]) -> Optional[str]:
    """Decrypt a stored secret.

    Rows imported as plaintext (no Fernet token) are returned unchanged so a
    device keeps polling; the warning tells the operator to re-save it.
    """
    if not ciphertext:
        return None
    try:
        return _fernet.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.warning("Stored SNMP secret is not a valid token, using it as plaintext")
        return ciphertext
