"""Exceptions raised by the squisher pipeline."""


class SquishError(RuntimeError):
    """Base class for every error the pipeline raises on purpose."""


class MalformedInputError(SquishError):
    """The input container (or an image it references) cannot be processed."""


class EncoderError(SquishError):
    """The external encoder failed; the message is its diagnostic output."""

    def __init__(self, message: str, command=None, returncode=None):
        super().__init__(message)
        self.command = list(command) if command is not None else None
        self.returncode = returncode
