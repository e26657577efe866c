from .base_repository import BaseRepository
from .user_repository import UserRepository
from .post_repository import PostRepository

__all__ = ["BaseRepository", "UserRepository", "PostRepository"]
