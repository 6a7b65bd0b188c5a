import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from ..domain.errors import NotInstalledError, ParseError
from ..domain.models import Version

logger = logging.getLogger(__name__)

_MVN_VERSION = re.compile(r"Apache Maven\s*((\d+\.?)*)")


def parse_mvn_version(output: str) -> Version:
    """pull the version out of ``mvn --version`` output."""
    match = _MVN_VERSION.search(output.strip())
    if not match or not match.group(1):
        raise ParseError("no maven version in output", output.strip().splitlines()[0] if output.strip() else None)
    return Version.parse(match.group(1))


def find_mvn(name: str = "mvn") -> Optional[Path]:
    found = shutil.which(name)
    return Path(found) if found else None


def find_mvn_version(path: Path) -> Version:
    """run ``<path> --version`` and parse the reported version."""
    logger.debug("running command: %s --version", path)
    try:
        result = subprocess.run([str(path), "--version"], capture_output=True, text=True)
    except OSError as e:
        raise NotInstalledError(f"failed to run {path}: {e}") from e
    if result.returncode != 0:
        raise NotInstalledError(f"{path} --version exited with {result.returncode}: {result.stderr.strip()}")
    return parse_mvn_version(result.stdout)
