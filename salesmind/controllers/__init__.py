"""FastAPI routers acting as controllers in the MVC architecture."""

from . import feedbacks, recordings

__all__ = ["feedbacks", "recordings"]
