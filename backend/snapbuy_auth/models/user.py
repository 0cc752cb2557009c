"""User model - the credential store behind every sign-in path."""

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from snapbuy_auth.models.base import Base, TimestampMixin

DEFAULT_ROLE = "USER"
ADMIN_ROLE = "ADMIN"


def _default_roles() -> list[str]:
    return [DEFAULT_ROLE]


class User(Base, TimestampMixin):
    """User account for authentication.

    Attributes:
        id: Integer primary key (the ``userId`` token claim).
        email: Unique email address, stored lower-case. Token subject.
        name: Display name.
        password_hash: bcrypt hash. NULL for passwordless accounts.
        roles: Role names granted to the account.
        phone: Phone number in international form, if known.
        provider: Where the account came from ("LOCAL" for registration).
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    roles: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=_default_roles,
    )
    phone: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )
    provider: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="LOCAL",
        server_default="LOCAL",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
