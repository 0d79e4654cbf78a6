"""Account models - identity and stored password hash."""

import uuid

from sqlalchemy import Boolean, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tokengate.models.base import BaseModel


class Account(BaseModel):
    """A user account that can log in and hold token sessions.

    The password hash lives in its own table and is loaded together with
    the account, since every login needs it.
    """

    __tablename__ = "accounts"

    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    password_hash: Mapped["AccountPasswordHash"] = relationship(
        "AccountPasswordHash",
        back_populates="account",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Account {self.email}>"


class AccountPasswordHash(BaseModel):
    """Encoded Argon2id hash for an account. One row per account."""

    __tablename__ = "account_password_hashes"

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    # $argon2id$v=19$m=...,t=...,p=...$salt$hash
    pass_hashed: Mapped[str] = mapped_column(String(255), nullable=False)

    account: Mapped[Account] = relationship("Account", back_populates="password_hash")

    def __repr__(self) -> str:
        return f"<AccountPasswordHash account_id={self.account_id}>"
