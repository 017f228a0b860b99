from app.services.posts import PostService

__all__ = ["PostService"]
