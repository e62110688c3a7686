"""
Domain errors raised by the library services.

Each error carries the HTTP status the API layer answers with, so routers can
let them propagate to the single handler registered in main.py.
"""

from fastapi import status


class LibraryError(Exception):
    """Base class for every failure the circulation engine reports."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(LibraryError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier):
        super().__init__(f"{resource} {identifier} not found")
        self.resource = resource
        self.identifier = identifier


class BookUnavailable(LibraryError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, book_id: int, title: str = ""):
        label = f"'{title}'" if title else f"Book {book_id}"
        super().__init__(f"{label} has no available copies")
        self.book_id = book_id


class ValidationError(LibraryError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NoActiveLoan(LibraryError):
    status_code = status.HTTP_409_CONFLICT


class InvalidCapability(LibraryError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, detail: str = "Invalid or missing library PIN"):
        super().__init__(detail)
