"""test suite for AcquisitionManager."""
import asyncio
import gzip
import hashlib
import logging
import pytest
import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mvnup.domain.errors import (
    CacheMismatchError,
    IntegrityError,
    NoBinariesError,
    NoSupportedArtifactError,
    TransportError,
)
from mvnup.domain.models import BinaryArtifact, Digest, DigestAlgorithm, Version
from mvnup.services.acquire import AcquisitionManager
from mvnup.site.http import HttpClient
from mirror import INDEX_URL, MIRROR, FakeMirror, binaries_url, version_index

CONTENT = b"pretend this is a maven distribution" * 100


def make_artifact(url="https://mirror.test/dist/a/apache-maven-3.8.4-bin.tar.gz", content=CONTENT, digest=None):
    return BinaryArtifact(
        url=url,
        filename=url.rsplit("/", 1)[1],
        size=len(content),
        last_modified=datetime(2021, 11, 14, tzinfo=timezone.utc),
        content_type="application/x-gzip",
        digest=digest,
    )


def platform(*suffixes):
    query = MagicMock()
    query.can_extract.side_effect = lambda suffix: suffix in suffixes
    return query


def run_with_manager(mirror: FakeMirror, body, query=None):
    async def go():
        async with HttpClient(transport=mirror.transport()) as http:
            manager = AcquisitionManager.create(http, MIRROR, "maven/maven-3/", query or platform(".tar.gz", ".zip"))
            return await body(manager)
    return asyncio.run(go())


class TestResolveVersion:
    @pytest.fixture
    def mirror(self):
        mirror = FakeMirror()
        mirror.add_get(INDEX_URL, version_index(["3.6.3", "3.8.1", "3.8.3", "3.8.4"]))
        return mirror

    def test_latest_when_no_pattern(self, mirror):
        """test no pattern resolves to the newest version."""
        assert run_with_manager(mirror, lambda m: m.resolve_version(None)) == Version.parse("3.8.4")

    def test_pattern(self, mirror):
        """test a constraint resolves to its newest match."""
        assert run_with_manager(mirror, lambda m: m.resolve_version("< 3.8")) == Version.parse("3.6.3")


class TestListBinaries:
    def test_lists_all_binaries(self):
        """test every archive of a version comes back with its digest."""
        mirror = FakeMirror()
        mirror.add_version("3.8.4")

        artifacts = run_with_manager(mirror, lambda m: m.list_binaries(Version.parse("3.8.4")))
        assert [a.filename for a in artifacts] == ["apache-maven-3.8.4-bin.tar.gz", "apache-maven-3.8.4-bin.zip"]
        assert all(a.digest.algorithm is DigestAlgorithm.SHA512 for a in artifacts)

    def test_failed_binary_is_dropped(self, caplog):
        """test a binary whose HEAD fails is logged and left out."""
        mirror = FakeMirror()
        mirror.add_version("3.8.4")
        zip_url = f"{binaries_url('3.8.4')}apache-maven-3.8.4-bin.zip"
        del mirror.head_routes[zip_url]

        with caplog.at_level(logging.WARNING, logger="mvnup"):
            artifacts = run_with_manager(mirror, lambda m: m.list_binaries(Version.parse("3.8.4")))
        assert [a.filename for a in artifacts] == ["apache-maven-3.8.4-bin.tar.gz"]
        assert zip_url in caplog.text

    def test_all_binaries_failing(self):
        """test NoBinariesError when no binary can be assembled."""
        mirror = FakeMirror()
        mirror.add_version("3.8.4")
        mirror.head_routes.clear()

        with pytest.raises(NoBinariesError, match="3.8.4"):
            run_with_manager(mirror, lambda m: m.list_binaries(Version.parse("3.8.4")))

    def test_missing_listing(self):
        """test a missing binaries directory is a transport error."""
        with pytest.raises(TransportError):
            run_with_manager(FakeMirror(), lambda m: m.list_binaries(Version.parse("3.8.4")))


class TestListMany:
    VERSIONS = ["3.8.4", "3.8.3", "3.8.1", "3.6.3", "3.6.2"]

    def test_partial_failure_tolerated(self, caplog):
        """test one failing version out of five is logged once and skipped."""
        mirror = FakeMirror()
        for v in self.VERSIONS:
            if v != "3.8.1":
                mirror.add_version(v)

        with caplog.at_level(logging.WARNING, logger="mvnup"):
            listing = run_with_manager(mirror, lambda m: m.list_many([Version.parse(v) for v in self.VERSIONS]))

        assert len(listing.entries) == 4
        assert [str(v) for v, _ in listing.failures] == ["3.8.1"]
        warnings = [r for r in caplog.records if "failed to fetch bins for version" in r.getMessage()]
        assert len(warnings) == 1

    def test_keeps_input_order(self):
        """test entries come back in the order the versions were given."""
        mirror = FakeMirror()
        for v in self.VERSIONS:
            mirror.add_version(v)

        listing = run_with_manager(mirror, lambda m: m.list_many([Version.parse(v) for v in self.VERSIONS]))
        assert [str(e.version) for e in listing.entries] == self.VERSIONS
        assert listing.failures == []

    def test_all_failing_raises(self):
        """test the batch only fails when every version fails."""
        with pytest.raises(NoBinariesError):
            run_with_manager(FakeMirror(), lambda m: m.list_many([Version.parse(v) for v in self.VERSIONS]))


class TestSelectBinary:
    @pytest.fixture
    def artifacts(self):
        return [
            make_artifact("https://m/apache-maven-3.8.4-bin.zip"),
            make_artifact("https://m/apache-maven-3.8.4-bin.tar.gz"),
        ]

    def _manager(self, query):
        return AcquisitionManager(MagicMock(), MagicMock(), MagicMock(), MagicMock(), query)

    def test_prefers_tarball(self, artifacts):
        """test .tar.gz wins when both formats can be unpacked."""
        chosen = self._manager(platform(".tar.gz", ".zip")).select_binary(artifacts)
        assert chosen.filename == "apache-maven-3.8.4-bin.tar.gz"

    def test_falls_back_to_zip(self, artifacts):
        """test .zip is chosen when tar is missing."""
        chosen = self._manager(platform(".zip")).select_binary(artifacts)
        assert chosen.filename == "apache-maven-3.8.4-bin.zip"

    def test_nothing_supported(self, artifacts):
        """test an error when the host has no archive tool."""
        with pytest.raises(NoSupportedArtifactError):
            self._manager(platform()).select_binary(artifacts)


class TestAcquire:
    URL = f"{binaries_url('3.8.4')}apache-maven-3.8.4-bin.tar.gz"

    @pytest.fixture
    def mirror(self):
        mirror = FakeMirror()
        mirror.add_artifact(self.URL, CONTENT)
        return mirror

    def test_cache_hit_skips_download(self, mirror, tmp_path):
        """test a cached file of the right size needs no request."""
        artifact = make_artifact(self.URL)
        (tmp_path / artifact.filename).write_bytes(CONTENT)

        path = run_with_manager(mirror, lambda m: m.acquire(artifact, tmp_path))
        assert path == tmp_path / artifact.filename
        assert mirror.requests == []

    def test_cache_size_mismatch(self, mirror, tmp_path):
        """test a cached file of the wrong size is an error."""
        artifact = make_artifact(self.URL)
        (tmp_path / artifact.filename).write_bytes(b"short")

        with pytest.raises(CacheMismatchError, match="size"):
            run_with_manager(mirror, lambda m: m.acquire(artifact, tmp_path))
        assert mirror.requests == []

    def test_cache_digest_mismatch(self, mirror, tmp_path):
        """test a cached file of the right size but wrong digest is an error."""
        digest = Digest(algorithm=DigestAlgorithm.SHA512, value=hashlib.sha512(CONTENT).hexdigest())
        artifact = make_artifact(self.URL, digest=digest)
        # same size, different bytes
        (tmp_path / artifact.filename).write_bytes(b"x" * len(CONTENT))

        with pytest.raises(CacheMismatchError, match="digest"):
            run_with_manager(mirror, lambda m: m.acquire(artifact, tmp_path))

    def test_force_replaces_mismatching_file(self, mirror, tmp_path):
        """test force downloads over a mismatching cached file."""
        artifact = make_artifact(self.URL)
        (tmp_path / artifact.filename).write_bytes(b"short")

        path = run_with_manager(mirror, lambda m: m.acquire(artifact, tmp_path, force=True))
        assert path.read_bytes() == CONTENT

    def test_download_with_digest(self, mirror, tmp_path):
        """test a verified download lands at the cache path with no .part left."""
        digest = Digest(algorithm=DigestAlgorithm.SHA512, value=hashlib.sha512(CONTENT).hexdigest())
        artifact = make_artifact(self.URL, digest=digest)
        cache_dir = tmp_path / "cache"

        path = run_with_manager(mirror, lambda m: m.acquire(artifact, cache_dir))
        assert path.read_bytes() == CONTENT
        assert mirror.count("GET", self.URL) == 1
        assert not (cache_dir / (artifact.filename + ".part")).exists()

    def test_content_encoding_is_not_decoded(self, tmp_path):
        """test the archive is stored byte for byte when served with Content-Encoding."""
        compressed = gzip.compress(CONTENT)
        mirror = FakeMirror()
        mirror.add_get(self.URL, compressed, headers={"Content-Encoding": "gzip"})
        digest = Digest(algorithm=DigestAlgorithm.SHA1, value=hashlib.sha1(compressed).hexdigest())
        artifact = make_artifact(self.URL, content=compressed, digest=digest)

        path = run_with_manager(mirror, lambda m: m.acquire(artifact, tmp_path))
        assert path.read_bytes() == compressed

    def test_download_digest_mismatch(self, mirror, tmp_path):
        """test a download failing its digest leaves nothing behind."""
        digest = Digest(algorithm=DigestAlgorithm.MD5, value=hashlib.md5(b"other").hexdigest())
        artifact = make_artifact(self.URL, digest=digest)

        with pytest.raises(IntegrityError):
            run_with_manager(mirror, lambda m: m.acquire(artifact, tmp_path))
        assert list(tmp_path.iterdir()) == []

    def test_download_failure_leaves_nothing(self, tmp_path):
        """test a failed request removes the partial file."""
        artifact = make_artifact(self.URL)

        with pytest.raises(TransportError):
            run_with_manager(FakeMirror(), lambda m: m.acquire(artifact, tmp_path))
        assert list(tmp_path.iterdir()) == []


class TestPrepare:
    def test_end_to_end(self, tmp_path):
        """test resolve, list, select and acquire in one call."""
        mirror = FakeMirror()
        mirror.add_get(INDEX_URL, version_index(["3.6.3", "3.8.4"]))
        mirror.add_version("3.6.3", sidecars=("asc",), content=CONTENT)

        version, artifact, path = run_with_manager(mirror, lambda m: m.prepare("< 3.8", tmp_path))
        assert version == Version.parse("3.6.3")
        assert artifact.filename == "apache-maven-3.6.3-bin.tar.gz"
        assert artifact.digest is None
        assert path.read_bytes() == CONTENT


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
