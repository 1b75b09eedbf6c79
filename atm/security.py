"""
Credential hashing.

The six-digit credential is never stored in plaintext. Stores hash it with
Argon2id on insert, and the session manager verifies login attempts against
the stored hash.

We use passlib's CryptContext for safe, high-level Argon2 operations. If the
scheme ever changes, passlib verifies old hashes with their original scheme
and hashes new credentials with the new one ("deprecated='auto'").
"""

from passlib.context import CryptContext


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_credential(plain_credential: str) -> str:
    """
    Hash a plaintext credential using Argon2id.

    Returns:
        An Argon2 hash string (e.g., "$argon2id$v=19$m=65536,t=3,p=4$...").
    """
    return pwd_context.hash(plain_credential)


def verify_credential(plain_credential: str, credential_hash: str) -> bool:
    """
    Verify a plaintext credential against a stored Argon2 hash.

    The comparison is constant-time, so response timing does not reveal how
    many leading digits of a guess were right.
    """
    return pwd_context.verify(plain_credential, credential_hash)
