"""Errors raised by the I/O collaborators around the shuffle core."""


class ArtisticShuffleError(Exception):
    """Base class for input / output failures reported to the user."""


class InputError(ArtisticShuffleError):
    """An input path is missing or a list file cannot be read."""

    def __init__(self, path, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"Input {path}: {detail}")


class OutputError(ArtisticShuffleError):
    """A playlist destination cannot be written."""

    def __init__(self, path, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"Output {path}: {detail}")
