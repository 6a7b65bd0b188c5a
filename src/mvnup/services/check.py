import asyncio
import logging
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from ..domain.errors import MvnupError, NotInstalledError
from ..domain.models import Version
from ..system.maven import find_mvn, find_mvn_version
from .acquire import AcquisitionManager

logger = logging.getLogger(__name__)


class CheckStatus(str, Enum):
    UP_TO_DATE = "up-to-date"
    UPDATE_AVAILABLE = "update-available"


class CheckResult(BaseModel):
    status: CheckStatus
    path: str
    installed: Version
    installed_date: date
    latest: Version
    latest_date: date


class CheckService:
    """compares the maven found on PATH with the newest one on the mirror."""

    def __init__(self, acquisition: AcquisitionManager, mvn_path: Optional[Path] = None):
        self.acquisition = acquisition
        self.mvn_path = mvn_path

    async def check(self) -> CheckResult:
        """
        raises:
            NotInstalledError: if no mvn is on PATH.
            MvnupError: if the installed version is newer than anything published.
        """
        path = self.mvn_path or find_mvn()
        if path is None:
            raise NotInstalledError("not found mvn on PATH")
        logger.debug("found mvn path: %s", path)

        loop = asyncio.get_running_loop()
        installed = await loop.run_in_executor(None, find_mvn_version, path)
        latest = await self.acquisition.catalog.latest()
        # a version newer than latest is not on the mirror, so no dates to fetch
        if installed > latest:
            raise MvnupError(f"installed version {installed} is newer than latest {latest}")

        installed_bins, latest_bins = await asyncio.gather(
            self.acquisition.list_binaries(installed),
            self.acquisition.list_binaries(latest),
        )
        installed_date = installed_bins[0].last_modified.date()
        latest_date = latest_bins[0].last_modified.date()

        status = CheckStatus.UP_TO_DATE if installed == latest else CheckStatus.UPDATE_AVAILABLE
        return CheckResult(
            status=status,
            path=str(path),
            installed=installed,
            installed_date=installed_date,
            latest=latest,
            latest_date=latest_date,
        )
