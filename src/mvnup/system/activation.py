import logging
import os
from pathlib import Path
from typing import Optional

from ..domain.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Activation:
    """manages the link that puts an installed ``mvn`` on the PATH."""

    def __init__(self, bin_dir: Path, link_name: str = "mvn"):
        self.bin_dir = bin_dir
        self.link_name = link_name

    @property
    def link_path(self) -> Path:
        return self.bin_dir / self.link_name

    def _ensure_bin_dir(self):
        if not self.bin_dir.is_dir():
            raise ConfigurationError(
                f"executable directory {self.bin_dir} does not exist, "
                f"create it or set MVNUP_BIN_DIR"
            )

    def activate(self, executable: Path) -> Path:
        self._ensure_bin_dir()
        link = self.link_path
        if link.is_symlink():
            link.unlink()
        elif link.exists():
            raise ConfigurationError(f"{link} exists and is not a link managed by mvnup")
        os.symlink(executable, link)
        logger.info("linked %s -> %s", link, executable)
        return link

    def target(self) -> Optional[Path]:
        link = self.link_path
        if not link.is_symlink():
            return None
        return Path(os.readlink(link))

    def deactivate(self) -> bool:
        link = self.link_path
        if not link.is_symlink():
            return False
        link.unlink()
        logger.info("removed link %s", link)
        return True
