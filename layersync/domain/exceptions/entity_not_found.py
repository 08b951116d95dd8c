"""
EntityNotFoundError - Raised when a model, object, attribute or relationship does not exist.
Never retried.
"""


class EntityNotFoundError(Exception):
    """Exception raised when a requested entity is not found."""

    def __init__(self, message: str = "The requested entity was not found."):
        super().__init__(message)
