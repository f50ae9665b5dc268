"""Error taxonomy for the conversion pipeline.

Every stage raises its own error kind and never recovers. The conversion
driver surfaces the first failing stage's error unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ._validate import ValidationError


class ConversionError(Exception):
    """Base class for all errors raised by the conversion pipeline."""


class DecodeError(ConversionError):
    """Malformed input bytes.

    Attributes:
        offset: Byte offset in the input buffer where decoding failed.
        expected: Description of the layout the decoder expected.
        found: Description of what was actually found.

    """

    def __init__(self, offset: int, expected: str, found: str) -> None:
        self.offset = offset
        self.expected = expected
        self.found = found
        super().__init__(f"at byte {offset}: expected {expected}, found {found}")


class BuildError(ConversionError):
    """Graph assembly failed while resolving decoded records."""

    def __init__(self, kind: str, key: str, message: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(message)


class DanglingReference(BuildError):
    """A record references a key that no record declares."""

    def __init__(self, kind: str, key: str, referrer: str = "") -> None:
        where = f" (referenced by {referrer})" if referrer else ""
        super().__init__(kind, key, f"Unresolved {kind} key '{key}'{where}")
        self.referrer = referrer


class DuplicateKey(BuildError):
    """Two records declare the same key."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(kind, key, f"Duplicate {kind} key '{key}'")


class ValidationFailed(ConversionError):
    """The graph violates one or more structural invariants.

    Attributes:
        errors: Every violation found, in check order.

    """

    def __init__(self, errors: Sequence[ValidationError]) -> None:
        self.errors = tuple(errors)
        summary = "; ".join(error.message for error in self.errors[:3])
        more = f" (and {len(self.errors) - 3} more)" if len(self.errors) > 3 else ""
        super().__init__(f"{len(self.errors)} validation error(s): {summary}{more}")


class EncodeError(ConversionError):
    """The graph contains a construct the target format cannot express."""


class UnsupportedTypeError(EncodeError):
    """A type descriptor has no equivalent in the other format."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"Type '{type_name}' has no equivalent in the target format")


class UnsupportedOperationError(EncodeError):
    """An operation cannot be translated."""

    def __init__(self, op: str, reason: str = "") -> None:
        self.op = op
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Unsupported operation '{op}'{detail}")


class ConversionCancelled(ConversionError):
    """The caller cancelled the conversion between two stages."""

    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(f"Conversion cancelled before {stage}")
