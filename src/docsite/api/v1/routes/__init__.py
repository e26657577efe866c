from . import health, posts, users

__all__ = ["health", "posts", "users"]
