"""Exception types shared by the collection pipeline."""


class CollectorError(RuntimeError):
    """Base class for collection failures."""


class RequestValidationError(ValueError):
    """Raised when an inbound collection request is missing required fields."""


class SetupError(CollectorError):
    """Raised when the browser session cannot be started."""


class PageError(CollectorError):
    """Raised when a browser page operation fails."""


class PageTimeout(PageError):
    """Raised when a browser page operation exceeds its wait budget."""


class DetailFetchError(CollectorError):
    """Raised when a listing detail page never renders its heading."""

    def __init__(self, candidate_id: str, cause: Exception) -> None:
        first_line = str(cause).split("\n", 1)[0]
        super().__init__(f"Failed to load listing {candidate_id}: {first_line}")
        self.candidate_id = candidate_id
        self.cause = cause
