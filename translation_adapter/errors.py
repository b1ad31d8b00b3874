"""Exceptions raised by the adaptation engine."""


class AdaptationError(Exception):
    """Base class for adaptation errors."""


class WikiApiError(AdaptationError):
    """The wiki API failed or answered with an error object."""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code


class InvalidTitleError(AdaptationError, ValueError):
    """Text that cannot be used as a page title."""
