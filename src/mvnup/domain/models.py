import hashlib
import re
from datetime import datetime
from enum import Enum
from functools import total_ordering
from pathlib import Path
from typing import List, Optional, Tuple

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import Version as PackagingVersion
from pydantic import BaseModel, ConfigDict, Field

from .errors import ParseError

_CLAUSE = re.compile(r"^(==|!=|<=|>=|~=|<|>)?\s*(\d+(?:\.\d+){0,2})(\.\*)?$")


@total_ordering
class Version(BaseModel):
    """a release version as published in the mirror's directory names."""
    model_config = ConfigDict(frozen=True)

    major: int = Field(ge=0)
    minor: int = Field(ge=0)
    patch: int = Field(ge=0)

    @classmethod
    def parse(cls, value: str) -> "Version":
        """
        parse a dotted three-part version such as ``3.8.4``.

        raises:
            ParseError: if there are not exactly three non-negative integer parts.
        """
        parts = value.strip().split(".")
        if len(parts) != 3:
            raise ParseError(f"invalid version format, expected 3 parts but got {len(parts)}", value)
        if not all(p.isascii() and p.isdigit() for p in parts):
            raise ParseError("invalid version format, parts must be non-negative integers", value)
        return cls(major=int(parts[0]), minor=int(parts[1]), patch=int(parts[2]))

    @property
    def key(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def as_packaging(self) -> PackagingVersion:
        return PackagingVersion(str(self))

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.key < other.key


class VersionConstraint(BaseModel):
    """
    a predicate over versions parsed from a user pattern.

    the pattern is one or more comma separated clauses ``OP VERSION``. omitted
    trailing components count as zero, ``==`` and ``!=`` accept a ``.*``
    wildcard, and a bare version means ``==``.
    """
    model_config = ConfigDict(frozen=True)

    pattern: str
    specifier: str

    @classmethod
    def parse(cls, pattern: str) -> "VersionConstraint":
        clauses = []
        for raw in pattern.split(","):
            match = _CLAUSE.match(raw.strip())
            if not match:
                raise ParseError("invalid version constraint", pattern)
            op, version, wildcard = match.groups()
            op = op or "=="
            if wildcard and op not in ("==", "!="):
                raise ParseError(f"wildcard not allowed with '{op}'", pattern)
            clauses.append(f"{op}{version}{wildcard or ''}")

        specifier = ",".join(clauses)
        try:
            SpecifierSet(specifier)
        except InvalidSpecifier as e:
            raise ParseError(f"invalid version constraint: {e}", pattern) from e
        return cls(pattern=pattern, specifier=specifier)

    @property
    def specifier_set(self) -> SpecifierSet:
        return SpecifierSet(self.specifier)

    def matches(self, version: Version) -> bool:
        return version.as_packaging() in self.specifier_set

    def first_match(self, versions: List[Version]) -> Optional[Version]:
        """return the first version satisfying the constraint, in the given order."""
        spec = self.specifier_set
        for v in versions:
            if v.as_packaging() in spec:
                return v
        return None


class DigestAlgorithm(str, Enum):
    SHA512 = "sha512"
    SHA1 = "sha1"
    MD5 = "md5"

    @property
    def hex_length(self) -> int:
        return _HEX_LENGTHS[self]


_HEX_LENGTHS = {
    DigestAlgorithm.SHA512: 128,
    DigestAlgorithm.SHA1: 40,
    DigestAlgorithm.MD5: 32,
}

# BSD style, as written by `shasum --tag`: "SHA512 (file) = hex"
_BSD_SIDECAR = re.compile(r"^\s*([A-Za-z0-9-]+)\s*\((.*)\)\s*=\s*(\S+)\s*$")


# checked in this order, first sidecar present wins
DIGEST_PRIORITY = (DigestAlgorithm.SHA512, DigestAlgorithm.SHA1, DigestAlgorithm.MD5)


class Digest(BaseModel):
    """expected checksum read from a ``<artifact>.<algorithm>`` sidecar."""
    model_config = ConfigDict(frozen=True)

    algorithm: DigestAlgorithm
    value: str

    @classmethod
    def from_sidecar(cls, algorithm: DigestAlgorithm, text: str, source: str = None) -> "Digest":
        """
        parse a sidecar in any of the usual layouts: bare hex, coreutils
        ``<hex>  <filename>`` or BSD ``SHA512 (<filename>) = <hex>``.

        raises:
            ParseError: if there is no hex digest of the algorithm's length.
        """
        text = text.strip()
        if not text:
            raise ParseError(f"empty {algorithm.value} digest file", source)

        bsd = _BSD_SIDECAR.match(text.splitlines()[0])
        if bsd:
            tag = bsd.group(1).lower().replace("-", "")
            if tag != algorithm.value:
                raise ParseError(f"{tag} digest in a {algorithm.value} file", source)
            raw = bsd.group(3)
        else:
            raw = text.split()[0]

        value = raw.lower()
        if not re.fullmatch(r"[0-9a-f]+", value):
            raise ParseError(f"malformed {algorithm.value} digest '{raw}'", source)
        if len(value) != algorithm.hex_length:
            raise ParseError(
                f"{algorithm.value} digest must be {algorithm.hex_length} hex characters, got {len(value)}",
                source,
            )
        return cls(algorithm=algorithm, value=value)

    def compute(self, path: Path) -> str:
        h = hashlib.new(self.algorithm.value)
        with open(path, "rb") as f:
            while chunk := f.read(1024 * 1024):
                h.update(chunk)
        return h.hexdigest()

    def matches_file(self, path: Path) -> bool:
        return self.compute(path) == self.value


class BinaryMetadata(BaseModel):
    """what a HEAD request tells us about one binary."""
    filename: str
    content_type: str
    size: int = Field(ge=0)
    last_modified: datetime


class BinaryArtifact(BaseModel):
    """one downloadable file of a version, with its metadata and optional digest."""
    model_config = ConfigDict(frozen=True)

    url: str
    filename: str
    size: int = Field(ge=0)
    last_modified: datetime
    content_type: str
    digest: Optional[Digest] = None

    @classmethod
    def assemble(cls, url: str, metadata: BinaryMetadata, digest: Optional[Digest]) -> "BinaryArtifact":
        return cls(
            url=url,
            filename=metadata.filename,
            size=metadata.size,
            last_modified=metadata.last_modified,
            content_type=metadata.content_type,
            digest=digest,
        )


class VersionBinaries(BaseModel):
    version: Version
    binaries: List[BinaryArtifact]


class BatchListing(BaseModel):
    """result of listing binaries for several versions at once."""
    entries: List[VersionBinaries] = Field(default_factory=list)
    failures: List[Tuple[Version, str]] = Field(default_factory=list)
