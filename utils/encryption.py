"""
Encryption utilities for the Lecturer Attendance Management System
Symmetric encryption of meeting passwords stored on course schedules
"""

import base64
import logging
import os

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

# Development fallback; production deployments set ENCRYPTION_KEY
DEVELOPMENT_KEY = 'o5T2m3cSuBm7zWZtHc3Kc8C0HgfV0m9b2sQ1uN8rJ4E='


class SecretEncryption:
    """Encrypt and decrypt short secrets with Fernet"""

    def __init__(self, key=None):
        key = key or os.environ.get('ENCRYPTION_KEY')
        if not key:
            key = DEVELOPMENT_KEY
            logger.warning("ENCRYPTION_KEY not set, using development encryption key")

        if isinstance(key, str):
            key = key.encode()

        self.cipher_suite = Fernet(key)

    def encrypt_password(self, password):
        """Encrypt a secret for storage"""
        encrypted = self.cipher_suite.encrypt(password.encode())
        return base64.urlsafe_b64encode(encrypted).decode()

    def decrypt_password(self, encrypted_password):
        """Decrypt a stored secret, None when the token is unreadable"""
        try:
            encrypted_bytes = base64.urlsafe_b64decode(encrypted_password.encode())
            return self.cipher_suite.decrypt(encrypted_bytes).decode()
        except (InvalidToken, ValueError) as e:
            logger.error("Error decrypting stored secret: %s", e)
            return None


# Global instance
password_encryptor = SecretEncryption()
