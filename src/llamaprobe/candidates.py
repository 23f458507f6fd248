"""Candidate addresses read from the sweep's output file."""

import ipaddress
import logging
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


def is_ip_literal(text: str) -> bool:
    try:
        ipaddress.ip_address(text)
    except ValueError:
        return False
    return True


def iter_candidates(lines: Iterator[str]) -> Iterator[str]:
    """Yield each valid IP literal once, in input order. Blank lines and junk are skipped."""
    seen: set[str] = set()
    for raw in lines:
        address = raw.strip()
        if not address:
            continue
        if not is_ip_literal(address):
            logger.debug("Skipping non-address line: %r", address)
            continue
        if address in seen:
            continue
        seen.add(address)
        yield address


def read_candidates(path: Path) -> list[str]:
    """Read the newline-delimited address list at path."""
    with open(path, encoding="utf-8", errors="replace") as f:
        return list(iter_candidates(f))
