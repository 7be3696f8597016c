"""Error taxonomy shared by every decoder.

Each error kind carries a distinct process exit code so the CLI can map
failures without inspecting messages.
"""

from __future__ import annotations


class DirectorError(ValueError):
    """Base class for all decoding failures."""

    exit_code = 1


class DetectionFailed(DirectorError):
    """No recognised container signature anywhere in the stream."""

    exit_code = 2

    def __init__(self, searched_length: int, detail: str = ""):
        self.searched_length = searched_length
        message = f"No Director container signature found in {searched_length} bytes"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class CorruptContainer(DirectorError):
    """Declared offsets or lengths exceed the container or the stream."""

    exit_code = 3


class DecodeFailed(DirectorError):
    """Decompression, checksum or decoded-length failure."""

    exit_code = 4


class TruncatedRecord(DirectorError):
    """A record is shorter than its type requires."""

    exit_code = 5


class LibraryNotFound(DirectorError):
    exit_code = 6

    def __init__(self, library: int):
        self.library = library
        super().__init__(f"Cast library {library} does not exist")


class MemberNotFound(DirectorError):
    exit_code = 7

    def __init__(self, library: int, member: int):
        self.library = library
        self.member = member
        super().__init__(f"Cast member {member} not found in library {library}")


class ExternalFileMissing(DirectorError):
    """The backing file of an external cast library could not be opened."""

    exit_code = 8

    def __init__(self, library: int, name: str, reason: str):
        self.library = library
        self.name = name
        super().__init__(f"External cast {name!r} for library {library}: {reason}")


class CorruptScore(DirectorError):
    """A score delta references an unestablished channel or is malformed."""

    exit_code = 9


class OutOfBounds(DirectorError):
    """Raised by BinaryReader; decoders convert it to their own error kind."""
