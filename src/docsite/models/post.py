from sqlalchemy import String, Text, DateTime, ForeignKey, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from datetime import datetime
from docsite.database.base import Base, utcnow
import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .user import User


class Post(Base):
    """
    SQLAlchemy model for Post.

    ``published_at`` is NULL for drafts. The author (``user_id``) is fixed at creation;
    deleting the user row in the database cascades to its posts.
    """

    __tablename__ = "posts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    # URL-safe identifier, unique across all rows (deleted ones included)
    slug: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False
    )

    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(),
        index=True,
        nullable=True
    )

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

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)

    # --- Relationships ---
    author: Mapped["User"] = relationship(
        "User",
        back_populates="posts",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Post(id={self.id!r}, slug={self.slug!r}, published={self.published_at is not None})>"
