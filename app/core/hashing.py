from passlib.context import CryptContext

from app.config import settings

# bcrypt_sha256 pre-hashes with SHA-256, so the whole password counts rather than
# bcrypt's first 72 bytes. Plain bcrypt hashes still verify.
pwd_context = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    deprecated="auto",
    bcrypt_sha256__rounds=settings.PASSWORD_HASH_ROUNDS,
    bcrypt__rounds=settings.PASSWORD_HASH_ROUNDS,
)

class Hasher:
    @staticmethod
    def hash_password(password: str) -> str:
        """Salted one-way hash; bcrypt embeds a fresh salt in every hash."""
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        if not plain_password or not hashed_password:
            return False
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def needs_rehash(hashed_password: str) -> bool:
        return pwd_context.needs_update(hashed_password)
