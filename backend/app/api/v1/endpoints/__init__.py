# API endpoints
from . import documents, health, letter_numbering, templates, verification

__all__ = ["documents", "health", "letter_numbering", "templates", "verification"]
