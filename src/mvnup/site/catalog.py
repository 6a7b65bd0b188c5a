import asyncio
import logging
from typing import Optional, Tuple
from urllib.parse import urljoin

from ..config import DEFAULT_PRODUCT_PATH
from ..domain.errors import EmptyCatalogError, NoMatchError, NotFoundError, ParseError
from ..domain.models import Version, VersionConstraint
from .http import HttpClient
from .parser import parse_version_links

logger = logging.getLogger(__name__)


class VersionCatalog:
    """
    all versions published on the mirror, newest first.

    the index page is fetched at most once per catalog instance. concurrent
    first callers wait on the same lock so only one request goes out.
    """

    def __init__(self, http: HttpClient, mirror: str, product_path: str = DEFAULT_PRODUCT_PATH):
        self.http = http
        self.index_url = urljoin(
            mirror if mirror.endswith("/") else mirror + "/",
            product_path.lstrip("/"),
        )
        self._versions: Optional[Tuple[Version, ...]] = None
        self._lock = asyncio.Lock()

    async def fetch_all(self) -> Tuple[Version, ...]:
        """
        return every version on the mirror, newest first.

        raises:
            TransportError: if the index cannot be fetched.
            EmptyCatalogError: if no directory entry parses as a version.
        """
        if self._versions is not None:
            return self._versions

        async with self._lock:
            if self._versions is None:
                self._versions = await self._load()
        return self._versions

    async def _load(self) -> Tuple[Version, ...]:
        logger.debug("fetching versions from %s", self.index_url)
        body = await self.http.get_text(self.index_url)

        versions = set()
        skipped = []
        for name in parse_version_links(body):
            try:
                versions.add(Version.parse(name))
            except ParseError:
                skipped.append(name)
        if skipped:
            logger.debug("skipped non-version directories: %s", skipped)

        if not versions:
            raise EmptyCatalogError(self.index_url)
        ordered = tuple(sorted(versions, reverse=True))
        logger.info("found %d versions, latest %s", len(ordered), ordered[0])
        return ordered

    async def latest(self) -> Version:
        versions = await self.fetch_all()
        if not versions:
            raise NotFoundError(f"no versions available at {self.index_url}")
        return versions[0]

    async def match(self, constraint: VersionConstraint) -> Version:
        """
        return the newest version satisfying the constraint.

        raises:
            NoMatchError: if no version matches.
        """
        versions = await self.fetch_all()
        found = constraint.first_match(list(versions))
        if found is None:
            raise NoMatchError(constraint.pattern)
        logger.debug("constraint '%s' resolved to %s", constraint.pattern, found)
        return found
