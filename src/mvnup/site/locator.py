import logging
from typing import List
from urllib.parse import urljoin

from pydantic import BaseModel

from ..config import DEFAULT_PRODUCT_PATH
from ..domain.errors import ParseError
from ..domain.models import Version
from .http import HttpClient
from .parser import parse_binary_names

logger = logging.getLogger(__name__)


class BinaryListing(BaseModel):
    """the binaries directory of one version, fetched once."""
    version: Version
    directory_url: str
    body: str
    binary_urls: List[str]


def _as_directory(url: str) -> str:
    return url if url.endswith("/") else url + "/"


class ArtifactLocator:
    """finds the candidate binaries of a version on the mirror."""

    BINARIES_TEMPLATE = "{product_path}{version}/binaries/"

    def __init__(self, http: HttpClient, mirror: str, product_path: str = DEFAULT_PRODUCT_PATH):
        self.http = http
        self.mirror = _as_directory(mirror)
        self.product_path = _as_directory(product_path.lstrip("/"))

    def binaries_url(self, version: Version) -> str:
        path = self.BINARIES_TEMPLATE.format(product_path=self.product_path, version=version)
        return urljoin(self.mirror, path)

    async def list_binary_urls(self, version: Version) -> BinaryListing:
        """
        fetch the binaries listing of a version and resolve every artifact url.

        raises:
            TransportError: if the listing cannot be fetched.
            ParseError: if the listing contains no binary.
        """
        url = self.binaries_url(version)
        logger.debug("fetching binaries for %s from %s", version, url)
        body = await self.http.get_text(url)
        try:
            names = parse_binary_names(body)
        except ParseError as e:
            raise ParseError(str(e), url) from e
        return BinaryListing(
            version=version,
            directory_url=url,
            body=body,
            binary_urls=[urljoin(url, name) for name in names],
        )

    @staticmethod
    def has_digest_sidecar(listing_body: str, binary_filename: str, algorithm_suffix: str) -> bool:
        # the listing is already in hand, so existence costs no request
        return f"{binary_filename}.{algorithm_suffix}" in listing_body
