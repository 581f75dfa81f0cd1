from passlib.context import CryptContext

import config


def make_password_context(memory_cost: int = config.PASSWORD_HASH_MEMORY_KIB,
                          rounds: int = config.PASSWORD_HASH_ROUNDS) -> CryptContext:
    """Argon2id context. Hashes are PHC strings: $argon2id$v=19$m=...,t=...,p=...$salt$hash"""
    return CryptContext(
        schemes=["argon2"],
        deprecated="auto",
        argon2__type="id",
        argon2__memory_cost=memory_cost,
        argon2__rounds=rounds,
    )


pwd_context = make_password_context()


def hash_password(password: str, context: CryptContext = None) -> str:
    """Hash a share/file password with argon2."""
    return (context or pwd_context).hash(password)


def verify_password(hashed: str, password: str, context: CryptContext = None) -> bool:
    """Verify plain password against a stored hash. Returns False on error instead of raising."""
    if not hashed or password is None:
        return False
    try:
        return (context or pwd_context).verify(password, hashed)
    except (ValueError, TypeError):
        # malformed or unrecognised stored hash
        return False
