class ImageOperationError(Exception):
    """Base class for failures reported back to the client as {"error": ...}."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(ImageOperationError):
    """A required upload or parameter is missing or malformed."""


class ProcessingError(ImageOperationError):
    """The image library rejected the input or the requested transform."""
