import logging
import subprocess
from pathlib import Path

from ..domain.errors import ExtractionError
from .platform import PlatformQuery

logger = logging.getLogger(__name__)


class Extractor:
    """unpacks a downloaded archive with the host's archive tool."""

    def __init__(self, platform: PlatformQuery = None):
        self.platform = platform or PlatformQuery()

    def command(self, archive: Path, destination: Path) -> list:
        name = archive.name
        if name.endswith(".tar.gz"):
            tool = self.platform.tool_for(".tar.gz")
            if tool:
                return [tool, "-xzf", str(archive), "-C", str(destination)]
        elif name.endswith(".zip"):
            tool = self.platform.tool_for(".zip")
            if tool:
                return [tool, "-q", "-o", str(archive), "-d", str(destination)]
        raise ExtractionError(str(archive), "no archive tool available for this file type")

    def extract(self, archive: Path, destination: Path) -> Path:
        destination.mkdir(parents=True, exist_ok=True)
        cmd = self.command(archive, destination)
        logger.debug("running command: %s", " ".join(cmd))
        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            raise ExtractionError(str(archive), result.stderr or result.stdout)
        return destination
