"""
Encryption utilities for securing session data at rest.
"""

import base64
import logging
from typing import Optional, Union

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from sessionstore.core.config import DEFAULT_KDF_ITERATIONS

logger = logging.getLogger(__name__)


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def derive_fernet_key(
    secret: Union[str, bytes],
    salt: Union[str, bytes],
    iterations: int = DEFAULT_KDF_ITERATIONS,
) -> bytes:
    """
    Derive a Fernet key from a shared secret.

    Args:
        secret: Application secret used as the PBKDF2 password
        salt: Deployment-specific salt; every process sharing the table must
            use the same value
        iterations: PBKDF2 iteration count

    Returns:
        URL-safe base64 encoded 32-byte key accepted by :class:`Fernet`
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_to_bytes(salt),
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(_to_bytes(secret)))


def create_cipher(
    key: Optional[Union[str, bytes]] = None,
    secret: Optional[Union[str, bytes]] = None,
    salt: Optional[Union[str, bytes]] = None,
    iterations: int = DEFAULT_KDF_ITERATIONS,
) -> Fernet:
    """
    Create a Fernet cipher from an explicit key or from secret + salt.

    Raises:
        ValueError: If neither a key nor both secret and salt are given
    """
    if key is not None:
        return Fernet(key)

    if not secret or not salt:
        raise ValueError("Encrypted serializer requires either 'key' or both 'secret' and 'salt'")

    logger.debug(f"Deriving session encryption key with {iterations} PBKDF2 iterations")
    return Fernet(derive_fernet_key(secret, salt, iterations))
