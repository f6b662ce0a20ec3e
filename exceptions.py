class LibraryError(Exception):
    """Base exception for library loan errors."""


class ValidationError(LibraryError):
    """A required field (email, password, book title) was left empty."""


class SelectionError(ValidationError):
    """No book was selected, or the selected title is not in the catalog."""


class AlreadyBorrowedError(LibraryError):
    """The book already has an outstanding loan."""


class NotFoundError(LibraryError):
    """No outstanding loan record has the given id."""


class PersistenceDecodeError(LibraryError):
    """The stored ledger could not be decoded."""


class NotLoggedInError(LibraryError):
    """An operation needs a logged-in user but the session is empty."""
