import asyncio
from typing import Optional

from passlib.context import CryptContext
from pydantic import validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import UserAccount
from app.db.session import AsyncSessionLocal
from app.services.roster.interfaces import IdentityProvider
from app.utils.auth import pwd_context
from app.utils.errors import EmailInUseError, InvalidEmailError, NetworkError, WeakPasswordError
from app.utils.logging import get_logger

logger = get_logger()

# Identity store's own floor, independent of the import policy
MIN_ACCOUNT_PASSWORD_LENGTH = 6


class LocalIdentityProvider(IdentityProvider):
    """Student login accounts kept in the user_accounts table with bcrypt hashes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        crypt_context: Optional[CryptContext] = None,
    ):
        self.session_factory = session_factory
        self.crypt_context = crypt_context or pwd_context

    async def create_account(self, email: str, password: str) -> str:
        try:
            _, normalized = validate_email(email)
        except ValueError as e:
            raise InvalidEmailError(f"Invalid email address '{email}'") from e
        normalized = normalized.lower()

        if not password or len(password) < MIN_ACCOUNT_PASSWORD_LENGTH:
            raise WeakPasswordError(
                f"Password should be at least {MIN_ACCOUNT_PASSWORD_LENGTH} characters"
            )

        # bcrypt is CPU bound; keep it off the event loop
        loop = asyncio.get_running_loop()
        password_hash = await loop.run_in_executor(None, self.crypt_context.hash, password)

        try:
            async with self.session_factory() as db:
                existing = await db.execute(
                    select(UserAccount.id).where(UserAccount.email == normalized)
                )
                if existing.scalar_one_or_none() is not None:
                    raise EmailInUseError(f"Email {normalized} is already in use")

                account = UserAccount(email=normalized, password_hash=password_hash)
                db.add(account)
                await db.commit()
                account_id = account.id
        except IntegrityError as e:
            raise EmailInUseError(f"Email {normalized} is already in use") from e
        except OperationalError as e:
            raise NetworkError(f"Identity store unavailable: {e.orig}") from e

        logger.debug(f"Account {account_id} created for {normalized}")
        return account_id

    async def delete_account(self, external_id: str) -> None:
        try:
            async with self.session_factory() as db:
                account = await db.get(UserAccount, external_id)
                if account is not None:
                    await db.delete(account)
                    await db.commit()
        except OperationalError as e:
            raise NetworkError(f"Identity store unavailable: {e.orig}") from e
