from typing import Optional


class MvnupError(Exception):
    """base class for exceptions in mvnup."""
    pass


class ParseError(MvnupError):
    """raised when a listing, version string or header value is malformed."""
    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(f"{message} ({source})" if source else message)


class TransportError(MvnupError):
    """raised when a request fails at the network level or with a bad status."""
    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class MissingHeaderError(MvnupError):
    """raised when a response lacks a header we cannot do without."""
    def __init__(self, header: str, url: str):
        self.header = header
        self.url = url
        super().__init__(f"missing header '{header}' in response for {url}")


class EmptyCatalogError(MvnupError):
    """raised when the version index parses but yields no usable version."""
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"no versions found at {url}")


class NotFoundError(MvnupError):
    """raised when a lookup has nothing to return."""
    pass


class NoMatchError(MvnupError):
    """raised when no catalog version satisfies a constraint."""
    def __init__(self, pattern: str):
        self.pattern = pattern
        super().__init__(f"no version matches '{pattern}'")


class NoBinariesError(MvnupError):
    """raised when no binary could be assembled for a version (or batch)."""
    def __init__(self, version: str, failures: Optional[list] = None):
        self.version = version
        self.failures = failures or []
        detail = f": {'; '.join(str(f) for f in self.failures)}" if self.failures else ""
        super().__init__(f"no binaries found for {version}{detail}")


class NoSupportedArtifactError(MvnupError):
    """raised when none of the artifacts can be unpacked on this host."""
    def __init__(self, filenames: list):
        self.filenames = filenames
        super().__init__(
            f"no supported archive among: {', '.join(filenames) or '(none)'}"
        )


class CacheMismatchError(MvnupError):
    """raised when a cached file exists but does not match the artifact."""
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"cached file {path} does not match: {reason}")


class IntegrityError(MvnupError):
    """raised when a freshly downloaded file fails size or digest checks."""
    def __init__(self, filename: str, reason: str):
        self.filename = filename
        self.reason = reason
        super().__init__(f"downloaded {filename} failed verification: {reason}")


class ExtractionError(MvnupError):
    """raised when the archive tool exits with an error."""
    def __init__(self, archive: str, output: str):
        self.archive = archive
        self.output = output
        super().__init__(f"failed to extract {archive}: {output.strip()}")


class ConfigurationError(MvnupError):
    """raised when the local environment is not set up the way we need."""
    pass


class NotInstalledError(MvnupError):
    """raised when an operation needs an installed maven and there is none."""
    pass


class UpdateRejectedError(MvnupError):
    """raised when update would not move to a strictly newer version."""
    def __init__(self, installed: str, target: str):
        self.installed = installed
        self.target = target
        super().__init__(
            f"installed version {installed} is not older than {target}, refusing to update"
        )


class AlreadyInstalledError(MvnupError):
    """raised when install is asked for while a version is already linked."""
    def __init__(self, version: str):
        self.version = version
        super().__init__(f"maven {version} is already installed, use update or uninstall first")
