"""Encoded polyline codec.

Routes travel between the routing provider, the database and the fare
calculator as encoded polylines: each coordinate is a zig-zag signed delta
from the previous one, scaled by 10**precision and split into 5-bit groups
offset by 63. Decoding has to run over the whole string from left to right.
"""

from collections.abc import Sequence

import polyline

from ridepool.core.exceptions import MalformedPolylineError

DEFAULT_PRECISION = 5

_CHUNK_OFFSET = 63
_CONTINUATION_BIT = 0x20
_MAX_CHUNK_CHAR = _CHUNK_OFFSET + 0x3F

LatLon = tuple[float, float]


def _validate(encoded: str) -> None:
    complete_values = 0
    for position, char in enumerate(encoded):
        code = ord(char)
        if not _CHUNK_OFFSET <= code <= _MAX_CHUNK_CHAR:
            raise MalformedPolylineError(
                f"Invalid polyline character {char!r} at position {position}",
                details={"position": position},
            )
        if (code - _CHUNK_OFFSET) < _CONTINUATION_BIT:
            complete_values += 1

    if (ord(encoded[-1]) - _CHUNK_OFFSET) & _CONTINUATION_BIT:
        raise MalformedPolylineError(
            "Polyline ends in the middle of a codeword",
            details={"length": len(encoded)},
        )
    if complete_values % 2:
        raise MalformedPolylineError(
            "Polyline has a latitude without a matching longitude",
            details={"values": complete_values},
        )


def decode(encoded: str, precision: int = DEFAULT_PRECISION) -> list[LatLon]:
    """Decode polyline string to list of (lat, lon) tuples.

    Raises:
        MalformedPolylineError: the string is truncated or not a polyline
    """
    if not encoded:
        return []

    _validate(encoded)
    try:
        coords = polyline.decode(encoded, precision)
    except (IndexError, ValueError) as e:
        raise MalformedPolylineError(f"Could not decode polyline: {e}") from e
    return [(lat, lon) for lat, lon in coords]


def encode(points: Sequence[LatLon], precision: int = DEFAULT_PRECISION) -> str:
    """Encode (lat, lon) points into a polyline string."""
    return polyline.encode([(lat, lon) for lat, lon in points], precision)
