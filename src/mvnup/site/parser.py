"""
parsing of apache-style directory listing pages.

every row of such a page is an icon ``<img alt="...">`` followed by a link.
the icon's alt text is the only thing telling a sub-directory apart from a
file, so rows are classified on it first and everything else only looks at
the classified rows.
"""
import logging
from enum import Enum
from typing import Iterable, Iterator, List, NamedTuple

from bs4 import BeautifulSoup

from ..domain.errors import ParseError

logger = logging.getLogger(__name__)

SIDECAR_SUFFIXES = (".asc", ".sha512", ".sha256", ".sha1", ".md5")


class RowKind(Enum):
    DIRECTORY = "directory"
    FILE = "file"
    OTHER = "other"


class ListingRow(NamedTuple):
    kind: RowKind
    text: str


def _classify(alt: str) -> RowKind:
    alt = alt.strip()
    if alt == "[DIR]":
        return RowKind.DIRECTORY
    # generic files get a blank icon label, e.g. "[   ]"
    inner = alt[1:-1] if alt.startswith("[") and alt.endswith("]") else alt
    if not inner.strip():
        return RowKind.FILE
    return RowKind.OTHER


def classify_rows(html: str) -> Iterator[ListingRow]:
    """yield every icon+link row of the listing, classified by its icon."""
    soup = BeautifulSoup(html, "html.parser")
    for img in soup.find_all("img"):
        link = img.find_next_sibling()
        if link is None or link.name != "a":
            continue
        text = link.get_text().strip().rstrip("/")
        if not text:
            continue
        yield ListingRow(_classify(img.get("alt", "")), text)


class _DirectoryNames:
    """restartable lazy view over the directory rows of a page."""

    def __init__(self, html: str):
        self._html = html

    def __iter__(self) -> Iterator[str]:
        for row in classify_rows(self._html):
            if row.kind is RowKind.DIRECTORY:
                yield row.text


def parse_version_links(html: str) -> Iterable[str]:
    """
    extract the names of all sub-directories in a listing.

    the names are not validated here; callers drop the ones that are not
    versions (e.g. ``3.1.0-alpha-1``).
    """
    return _DirectoryNames(html)


def parse_binary_names(html: str) -> List[str]:
    """
    extract the names of downloadable files in a binaries listing.

    signature and checksum sidecars are excluded.

    raises:
        ParseError: if the page lists no binary at all.
    """
    names = [
        row.text
        for row in classify_rows(html)
        if row.kind is RowKind.FILE and not row.text.endswith(SIDECAR_SUFFIXES)
    ]
    logger.debug("found binaries: %s", names)
    if not names:
        raise ParseError("no binary files found in listing")
    return names
