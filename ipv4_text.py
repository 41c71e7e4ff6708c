"""Text adapters for IPv4 addresses: dotted-quad parsing and address files."""
import logging
import re
from pathlib import Path
from typing import List, Union

import numpy as np
import numpy.typing as npt

logger = logging.getLogger(__name__)

_OCTET = re.compile(r"[0-9]+")


def parse_ipv4(text: str) -> int:
    """Parse a dotted-quad string such as "192.168.0.1" into a 32-bit value.

    The first octet ends up in the most significant byte.

    Raises:
        ValueError: on anything other than four dot-separated decimal octets
            in [0, 255].
    """
    tokens = text.split(".")
    if len(tokens) > 4:
        raise ValueError(f"Invalid IPv4 (too many octets): '{text}'")
    if len(tokens) < 4:
        raise ValueError(f"Invalid IPv4 (expected 4 octets): '{text}'")

    value = 0
    for token in tokens:
        if not token:
            raise ValueError(f"Invalid IPv4 (empty octet): '{text}'")
        if not _OCTET.fullmatch(token):
            raise ValueError(f"Invalid IPv4 octet: '{token}' in '{text}'")
        octet = int(token)
        if octet > 255:
            raise ValueError(f"IPv4 octet out of range [0,255]: '{token}' in '{text}'")
        value = (value << 8) | octet
    return value


def format_ipv4(value: int) -> str:
    return ".".join(str((value >> shift) & 0xFF) for shift in (24, 16, 8, 0))


def read_addresses(path: Union[str, Path]) -> npt.NDArray[np.uint32]:
    """Read one dotted-quad address per line.

    Surrounding whitespace is ignored, as are blank lines and lines starting
    with '#'. OSError from opening the file propagates unchanged.

    Raises:
        ValueError: for a malformed line, prefixed with its 1-based number.
    """
    addresses: List[int] = []
    with open(path, "r", encoding="utf-8") as handle:
        for line_no, raw in enumerate(handle, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            try:
                addresses.append(parse_ipv4(line))
            except ValueError as exc:
                raise ValueError(f"Error parsing IPv4 at line {line_no}: {exc}") from exc
    logger.debug("read %d addresses from %s", len(addresses), path)
    return np.asarray(addresses, dtype=np.uint32)
