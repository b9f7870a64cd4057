from .collection import StoredCollection

__all__ = [
    "StoredCollection",
]
