"""host-side collaborators: archive tools, activation links and the installed maven."""
from .activation import Activation
from .extractor import Extractor
from .maven import find_mvn, find_mvn_version, parse_mvn_version
from .platform import ARCHIVE_SUFFIXES, PlatformQuery

__all__ = [
    "Activation",
    "Extractor",
    "PlatformQuery",
    "ARCHIVE_SUFFIXES",
    "find_mvn",
    "find_mvn_version",
    "parse_mvn_version",
]
