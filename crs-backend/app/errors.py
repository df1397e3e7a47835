"""Error taxonomy shared by the WKT / PROJ string I/O and the registry.

None of these are retried internally; callers decide whether to fall back
(another dialect, another authority).
"""
from __future__ import annotations


class GeoTextError(Exception):
    """Root of every data error raised by this package."""


class ParsingError(GeoTextError):
    """Malformed WKT or PROJ string input."""


class FormattingError(GeoTextError):
    """The active convention cannot express the requested construct."""


class FactoryError(GeoTextError):
    """Registry resolution failed (malformed row, ambiguous construction)."""


class NoSuchAuthorityCodeError(FactoryError):
    def __init__(self, message: str, authority: str, code: str):
        super().__init__(message)
        self.authority = authority
        self.code = code

    def __reduce__(self):
        return (self.__class__, (str(self), self.authority, self.code))


__all__ = [
    "GeoTextError",
    "ParsingError",
    "FormattingError",
    "FactoryError",
    "NoSuchAuthorityCodeError",
]
