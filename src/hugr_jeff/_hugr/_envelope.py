"""HUGR envelope framing.

An envelope is a ten byte header followed by the payload. The header is the
magic ``HUGRiHJv``, a format byte and a flags byte. Only the JSON package
format is written.
"""

from pydantic import ValidationError

from hugr_jeff._errors import DecodeError

from ._serial import Package

MAGIC = b"HUGRiHJv"
FORMAT_PACKAGE_JSON = 63
FLAGS = 0
HEADER_SIZE = len(MAGIC) + 2


def write_envelope(package: Package) -> bytes:
    """Serialize a package into envelope bytes."""
    return MAGIC + bytes((FORMAT_PACKAGE_JSON, FLAGS)) + package.model_dump_json().encode("utf-8")


def read_envelope(data: bytes) -> Package:
    """Parse envelope bytes back into a package.

    Raises:
        DecodeError: If the header is wrong or the payload is not a valid
            package.

    """
    if len(data) < HEADER_SIZE:
        raise DecodeError(0, f"{HEADER_SIZE} byte envelope header", f"{len(data)} byte(s)")
    if data[: len(MAGIC)] != MAGIC:
        raise DecodeError(0, f"magic {MAGIC!r}", repr(bytes(data[: len(MAGIC)])))
    if data[len(MAGIC)] != FORMAT_PACKAGE_JSON:
        raise DecodeError(len(MAGIC), f"format {FORMAT_PACKAGE_JSON}", str(data[len(MAGIC)]))
    if data[len(MAGIC) + 1] != FLAGS:
        raise DecodeError(len(MAGIC) + 1, f"flags {FLAGS}", str(data[len(MAGIC) + 1]))
    try:
        return Package.model_validate_json(data[HEADER_SIZE:])
    except ValidationError as e:
        raise DecodeError(HEADER_SIZE, "HUGR package JSON", f"{e.error_count()} schema error(s)") from e
