"""
checksums.txt parsing.

Each release carries a ``checksums.txt`` asset in ``sha256sum`` format:
one ``<64 hex digits><whitespace><filename>`` pair per line. Lines that do
not have this shape are ignored.
"""

import re

_LINE_PATTERN = re.compile(r"^([a-fA-F0-9]{64})\s+\*?(.+?)\s*$")


def parse_checksums(text: str) -> dict[str, str]:
    """
    Parse a checksums.txt body into a filename to digest mapping.

    Digests are normalized to lower case. A leading ``*`` on the filename
    (binary-mode marker written by ``sha256sum -b``) is dropped.

    Args:
        text: File contents

    Returns:
        Mapping of filename to hex digest (empty if nothing parsed)
    """
    ledger: dict[str, str] = {}
    for line in text.splitlines():
        match = _LINE_PATTERN.match(line)
        if match:
            ledger[match.group(2)] = match.group(1).lower()
    return ledger
