"""Custom exceptions for slide pyramid operations.

These exceptions provide context-rich error handling for slide access and
tile addressing, wrapping the decoder's side-channel errors with meaningful
messages.
"""

from __future__ import annotations

from pathlib import Path


class PyramidError(Exception):
    """Base exception for all slide pyramid errors."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        """Initialize error with optional path context.

        Args:
            message: Human-readable error description.
            path: Path to the slide file that caused the error.
        """
        self.path = Path(path) if path else None
        self.message = message
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with path context if available."""
        if self.path:
            return f"{self.message} (path: {self.path})"
        return self.message


class OpenError(PyramidError):
    """Raised when a slide cannot be opened.

    No partial handle survives this error; anything acquired during the
    attempt has already been released.
    """

    pass


class SlideNotFoundError(OpenError):
    """Raised when the slide path does not exist (checked before the decoder)."""

    pass


class UnsupportedVendorError(OpenError):
    """Raised when the decoder recognises the vendor but cannot open the file."""

    def __init__(self, vendor: str, path: Path | str | None = None) -> None:
        self.vendor = vendor
        super().__init__(f"Vendor {vendor} unsupported", path)


class UnrecognizedFormatError(OpenError):
    """Raised when the decoder does not recognise the file at all."""

    pass


class SlideClosedError(PyramidError):
    """Raised when an operation is attempted on a closed slide."""

    pass


class DecoderError(PyramidError):
    """Raised when the native decoder reports a failure.

    The decoder signals failure through a sentinel return value plus a
    separate error channel. ``decoder_message`` holds the channel's text, or
    None when the channel was empty despite the sentinel (a decoder contract
    violation).
    """

    def __init__(
        self,
        message: str,
        path: Path | str | None = None,
        *,
        operation: str | None = None,
        decoder_message: str | None = None,
        level: int | None = None,
        location: tuple[int, int] | None = None,
        size: tuple[int, int] | None = None,
    ) -> None:
        """Initialize decoder error with operation context.

        Args:
            message: Human-readable error description.
            path: Path to the slide file.
            operation: Decoder call that failed (e.g. "read_region").
            decoder_message: Text from the decoder's error channel.
            level: Native level being accessed.
            location: (x, y) level-0 origin of a region read.
            size: (width, height) of a region read.
        """
        self.operation = operation
        self.decoder_message = decoder_message
        self.level = level
        self.location = location
        self.size = size
        super().__init__(message, path)

    def _format_message(self) -> str:
        """Format error message with full operation context."""
        parts = [self.message]
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.path:
            parts.append(f"path={self.path}")
        if self.level is not None:
            parts.append(f"level={self.level}")
        if self.location is not None:
            parts.append(f"location={self.location}")
        if self.size is not None:
            parts.append(f"size={self.size}")

        if len(parts) == 1:
            return parts[0]
        return f"{parts[0]} ({', '.join(parts[1:])})"


class GeometryError(PyramidError):
    """Raised when the deep-zoom pyramid cannot be resolved against the slide.

    Fatal to opening the pyramid.
    """

    def __init__(
        self,
        message: str,
        path: Path | str | None = None,
        *,
        downsample: float | None = None,
    ) -> None:
        self.downsample = downsample
        super().__init__(message, path)


class AddressOutOfRangeError(PyramidError):
    """Raised when a tile address lies outside a level's tile grid.

    Purely local validation; the decoder is never consulted. The slide
    stays usable for other requests.
    """

    def __init__(
        self,
        message: str,
        *,
        level: int | None = None,
        row: int | None = None,
        column: int | None = None,
    ) -> None:
        self.level = level
        self.row = row
        self.column = column
        super().__init__(message)

    def _format_message(self) -> str:
        parts = [
            f"{name}={value}"
            for name, value in (
                ("level", self.level),
                ("row", self.row),
                ("column", self.column),
            )
            if value is not None
        ]
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"
