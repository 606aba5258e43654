"""
Exception types raised by the Mandelbrot engine.
"""


class MandelbrotError(Exception):
    """Base class for all engine errors."""


class InvalidViewport(MandelbrotError, ValueError):
    """Raised when a viewport has inverted, empty or non-finite bounds."""


class UnsupportedPaletteKind(MandelbrotError, KeyError):
    """Raised internally when a palette selector is not in the registry."""


class WorkerFailure(MandelbrotError, RuntimeError):
    """
    Raised when a band worker fails during a parallel render.

    Attributes:
        band: (row_start, row_end) of the band that failed first
    """

    def __init__(self, message, band=None):
        super().__init__(message)
        self.band = band
