"""Account lookup, persistence and self-service management."""

import asyncio
import logging
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tokengate.models.account import Account, AccountPasswordHash
from tokengate.services.errors import (
    AccountNotFoundError,
    EmailAlreadyExistsError,
    WrongOldPasswordError,
)
from tokengate.services.password import PasswordHasher

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountLookup(Protocol):
    """Read access to accounts needed by the authentication flows."""

    async def find_by_email(self, email: str) -> Account | None: ...

    async def find_by_id(self, account_id: UUID) -> Account | None: ...


class AccountRepository:
    """SQLAlchemy-backed account storage."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_email(self, email: str) -> Account | None:
        result = await self.session.execute(
            select(Account).where(Account.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def find_by_id(self, account_id: UUID) -> Account | None:
        result = await self.session.execute(select(Account).where(Account.id == account_id))
        return result.scalar_one_or_none()

    async def create(self, account: Account, pass_hashed: str) -> Account:
        """Insert an account together with its password hash."""
        account.password_hash = AccountPasswordHash(pass_hashed=pass_hashed)
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def update(self, account: Account) -> Account:
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def update_password(self, account: Account, pass_hashed: str) -> None:
        """Replace the stored hash for an account."""
        if account.password_hash is None:
            account.password_hash = AccountPasswordHash(pass_hashed=pass_hashed)
        else:
            account.password_hash.pass_hashed = pass_hashed
        await self.session.commit()


class AccountService:
    """Registration and profile operations for the signed-in account."""

    def __init__(
        self,
        repository: AccountRepository,
        hasher: PasswordHasher,
        active_on_register: bool = True,
    ):
        self.repository = repository
        self.hasher = hasher
        self.active_on_register = active_on_register

    async def register(self, full_name: str, email: str, password: str) -> Account:
        """Create a new account.

        Raises:
            EmailAlreadyExistsError: If the email is already registered.
        """
        email = normalize_email(email)
        if await self.repository.find_by_email(email) is not None:
            raise EmailAlreadyExistsError()

        pass_hashed = await asyncio.to_thread(self.hasher.hash, password)
        account = Account(full_name=full_name, email=email, active=self.active_on_register)
        account = await self.repository.create(account, pass_hashed)

        logger.info(f"Registered account {account.id}")
        return account

    async def get_current(self, account_id: UUID) -> Account:
        account = await self.repository.find_by_id(account_id)
        if account is None:
            raise AccountNotFoundError()
        return account

    async def update(self, account_id: UUID, full_name: str, email: str) -> Account:
        """Update the account's name and email.

        Raises:
            AccountNotFoundError: If the account no longer exists.
            EmailAlreadyExistsError: If the email belongs to another account.
        """
        account = await self.get_current(account_id)
        email = normalize_email(email)
        if email != account.email:
            existing = await self.repository.find_by_email(email)
            if existing is not None and existing.id != account.id:
                raise EmailAlreadyExistsError()

        account.full_name = full_name
        account.email = email
        return await self.repository.update(account)

    async def update_password(self, account_id: UUID, old_password: str, new_password: str) -> None:
        """Change the account password after checking the current one.

        Raises:
            AccountNotFoundError: If the account no longer exists.
            WrongOldPasswordError: If ``old_password`` does not match.
        """
        account = await self.get_current(account_id)
        if account.password_hash is None:
            raise WrongOldPasswordError()

        valid = await asyncio.to_thread(
            self.hasher.verify, old_password, account.password_hash.pass_hashed
        )
        if not valid:
            raise WrongOldPasswordError()

        pass_hashed = await asyncio.to_thread(self.hasher.hash, new_password)
        await self.repository.update_password(account, pass_hashed)
        logger.info(f"Password changed for account {account.id}")
