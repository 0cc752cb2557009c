"""Repository for User lookups and registration.

The credential store behind sign-in: every auth flow resolves its account
through here. Callers control transaction boundaries.
"""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from snapbuy_auth.models.user import DEFAULT_ROLE, User


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static — no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: int) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: Integer primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.strip().lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_identifier(db: AsyncSession, identifier: str) -> User | None:
        """Fetch a user by email, falling back to display name.

        Email matches win over name matches; among several accounts sharing
        a name the oldest is returned.

        Args:
            db: Async database session.
            identifier: Email address or display name.

        Returns:
            User if found, None otherwise.
        """
        value = identifier.strip()
        stmt = (
            select(User)
            .where(or_(User.email == value.lower(), User.name == value))
            .order_by((User.email == value.lower()).desc(), User.id)
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        name: str,
        password_hash: str | None = None,
        phone: str | None = None,
        roles: list[str] | None = None,
    ) -> User:
        """Create a new user.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            email: User email address.
            name: Display name.
            password_hash: bcrypt hash (None for passwordless accounts).
            phone: Normalized phone number.
            roles: Role names. Defaults to ["USER"].

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        user = User(
            email=email.strip().lower(),
            name=name,
            password_hash=password_hash,
            phone=phone,
            roles=list(roles) if roles else [DEFAULT_ROLE],
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user
