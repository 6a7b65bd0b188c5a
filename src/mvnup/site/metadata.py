import asyncio
import logging
from email.utils import parsedate_to_datetime
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import unquote, urlparse

from ..domain.errors import MissingHeaderError, ParseError
from ..domain.models import DIGEST_PRIORITY, BinaryArtifact, BinaryMetadata, Digest
from .http import HttpClient
from .locator import ArtifactLocator

logger = logging.getLogger(__name__)


def filename_from_url(url: str) -> str:
    name = PurePosixPath(unquote(urlparse(url).path)).name
    if not name:
        raise ParseError("no filename in url", url)
    return name


class MetadataFetcher:
    """collects size, date, type and digest of a binary without downloading it."""

    def __init__(self, http: HttpClient):
        self.http = http

    async def fetch_metadata(self, url: str) -> BinaryMetadata:
        """
        read the binary's metadata from a HEAD request.

        raises:
            TransportError: if the request fails or returns a non-2xx status.
            MissingHeaderError: if Content-Length, Last-Modified or Content-Type is absent.
            ParseError: if a header value cannot be parsed.
        """
        filename = filename_from_url(url)
        logger.debug("fetching bin %s metadata for %s", filename, url)
        headers = await self.http.head(url)

        values = {}
        for name in ("Content-Length", "Last-Modified", "Content-Type"):
            if name not in headers:
                raise MissingHeaderError(name, url)
            values[name] = headers[name].strip()
        logger.debug("parsing headers for %s: %s", filename, values)

        raw_size = values["Content-Length"]
        # plain ascii digits only; int() would also take "1_000", "+5" or "-5"
        if not (raw_size.isascii() and raw_size.isdigit()):
            raise ParseError(f"invalid Content-Length '{raw_size}'", url)
        size = int(raw_size)

        try:
            last_modified = parsedate_to_datetime(values["Last-Modified"])
        except (TypeError, ValueError) as e:
            raise ParseError(f"invalid Last-Modified '{values['Last-Modified']}'", url) from e

        return BinaryMetadata(
            filename=filename,
            content_type=values["Content-Type"],
            size=size,
            last_modified=last_modified,
        )

    async def fetch_digest(self, binary_url: str, listing_body: str) -> Optional[Digest]:
        """
        fetch the expected checksum of a binary from its sidecar file.

        algorithms are tried strongest first and only those whose sidecar
        shows up in the listing cost a request. returns None when the
        listing has no sidecar for the binary.
        """
        filename = filename_from_url(binary_url)
        for algorithm in DIGEST_PRIORITY:
            if not ArtifactLocator.has_digest_sidecar(listing_body, filename, algorithm.value):
                continue
            sidecar_url = f"{binary_url}.{algorithm.value}"
            logger.debug("fetching %s digest from %s", algorithm.value, sidecar_url)
            text = await self.http.get_text(sidecar_url)
            return Digest.from_sidecar(algorithm, text, sidecar_url)

        logger.debug("no digest sidecar listed for %s", filename)
        return None

    async def fetch(self, url: str, listing_body: str) -> BinaryArtifact:
        """
        fetch metadata and digest of one binary concurrently.

        the two are one unit: if either fails, the binary fails.
        """
        metadata, digest = await asyncio.gather(
            self.fetch_metadata(url),
            self.fetch_digest(url, listing_body),
        )
        artifact = BinaryArtifact.assemble(url, metadata, digest)
        logger.debug("found a binary: %s", artifact)
        return artifact
