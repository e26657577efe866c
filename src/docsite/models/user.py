from sqlalchemy import String, DateTime, Index, UUID, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from datetime import datetime
from docsite.database.base import Base, utcnow
import uuid
from typing import TYPE_CHECKING

# Avoid circular import issues when using type hints for related models
if TYPE_CHECKING:
    from .post import Post


class User(Base):
    """
    SQLAlchemy model for User.

    A row with ``deleted_at`` set is soft-deleted: it stays in the table but every default
    read path filters it out. Email uniqueness is enforced among live rows only (partial
    unique index), so an address frees up once its owner is soft-deleted.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index(
            "uq_users_email_live",
            "email",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        index=True,
        nullable=False
    )

    # Display name
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False
    )

    # Repositories pass created_at/updated_at explicitly so both share one clock reading.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(),
        default=utcnow,
        server_default=func.now(),
        index=True,
        nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(),
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(),
        nullable=True
    )

    # --- Relationships ---
    # One-to-Many. Never lazy-loaded: async sessions cannot do implicit IO.
    posts: Mapped[list["Post"]] = relationship(
        "Post",
        back_populates="author",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, email={self.email!r}, deleted={self.deleted_at is not None})>"
