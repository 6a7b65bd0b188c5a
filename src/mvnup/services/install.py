import asyncio
import json
import logging
import shutil
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from ..domain.errors import (
    AlreadyInstalledError,
    ExtractionError,
    NotInstalledError,
    UpdateRejectedError,
)
from ..domain.models import Version
from ..system.activation import Activation
from ..system.extractor import Extractor
from .acquire import AcquisitionManager

logger = logging.getLogger(__name__)


class InstallState(str, Enum):
    NOT_INSTALLED = "not-installed"
    RESOLVING = "resolving"
    ACQUIRING = "acquiring"
    EXTRACTING = "extracting"
    LINKED = "linked"


class InstallReceipt(BaseModel):
    """what we installed, kept next to the cache so uninstall can undo it."""
    version: str
    artifact: str
    home: str
    executable: str
    installed_at: str

    @property
    def parsed_version(self) -> Version:
        return Version.parse(self.version)


class InstallService:
    """handles install, update and uninstall of a maven version."""

    def __init__(
        self,
        acquisition: AcquisitionManager,
        extractor: Extractor,
        activation: Activation,
        cache_dir: Path,
        install_dir: Path,
        receipt_file: Path,
    ):
        self.acquisition = acquisition
        self.extractor = extractor
        self.activation = activation
        self.cache_dir = cache_dir
        self.install_dir = install_dir
        self.receipt_file = receipt_file
        self.current = self.state()

    def _enter(self, state: InstallState):
        if state is self.current:
            return
        logger.debug("install state %s -> %s", self.current.value, state.value)
        self.current = state

    def load_receipt(self) -> Optional[InstallReceipt]:
        if not self.receipt_file.exists():
            return None
        try:
            with open(self.receipt_file, "r") as f:
                return InstallReceipt(**json.load(f))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("ignoring unreadable receipt %s: %s", self.receipt_file, e)
            return None

    def _save_receipt(self, receipt: InstallReceipt):
        self.receipt_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.receipt_file, "w") as f:
            f.write(receipt.model_dump_json(indent=2))

    def state(self) -> InstallState:
        """Linked when a receipt exists and the activation link points at it."""
        receipt = self.load_receipt()
        if receipt is None:
            return InstallState.NOT_INSTALLED
        if self.activation.target() != Path(receipt.executable):
            return InstallState.NOT_INSTALLED
        return InstallState.LINKED

    async def install(self, pattern: Optional[str] = None, force: bool = False) -> InstallReceipt:
        """
        install the version matching pattern (latest if omitted) and link it.

        args:
            pattern: version constraint, e.g. ``3.8.4`` or ``>=3.6,<3.8``.
            force: re-download a cached file that does not match.

        raises:
            AlreadyInstalledError: if a version is already linked.
        """
        self.current = self.state()
        if self.current is InstallState.LINKED:
            raise AlreadyInstalledError(self.load_receipt().version)

        self._enter(InstallState.RESOLVING)
        try:
            version = await self.acquisition.resolve_version(pattern)
            return await self._install_version(version, force)
        except BaseException:
            self.current = self.state()
            raise

    async def _install_version(self, version: Version, force: bool) -> InstallReceipt:
        self._enter(InstallState.RESOLVING)
        artifacts = await self.acquisition.list_binaries(version)
        artifact = self.acquisition.select_binary(artifacts)

        self._enter(InstallState.ACQUIRING)
        archive = await self.acquisition.acquire(artifact, self.cache_dir, force=force)

        self._enter(InstallState.EXTRACTING)
        home = (self.install_dir / str(version)).expanduser().resolve()
        loop = asyncio.get_running_loop()
        if home.exists():
            await loop.run_in_executor(None, shutil.rmtree, home)
        await loop.run_in_executor(None, self.extractor.extract, archive, home)
        executable = self._find_executable(home, archive)

        self.activation.activate(executable)
        receipt = InstallReceipt(
            version=str(version),
            artifact=artifact.filename,
            home=str(home),
            executable=str(executable),
            installed_at=datetime.now().isoformat(),
        )
        self._save_receipt(receipt)
        self._enter(InstallState.LINKED)
        logger.info("installed maven %s into %s", version, home)
        return receipt

    @staticmethod
    def _find_executable(home: Path, archive: Path) -> Path:
        # archives unpack into a single top-level apache-maven-x.y.z directory
        candidates = sorted(home.glob("*/bin/mvn")) or sorted(home.glob("bin/mvn"))
        if not candidates:
            raise ExtractionError(str(archive), f"no bin/mvn found under {home}")
        return candidates[0].resolve()

    async def uninstall(self) -> InstallReceipt:
        """remove the linked version, its install directory and the link."""
        self.current = self.state()
        receipt = self.load_receipt()
        if self.current is not InstallState.LINKED or receipt is None:
            raise NotInstalledError("no maven version installed by mvnup")

        self.activation.deactivate()
        home = Path(receipt.home)
        if home.exists():
            await asyncio.get_running_loop().run_in_executor(None, shutil.rmtree, home)
        self.receipt_file.unlink(missing_ok=True)
        self._enter(InstallState.NOT_INSTALLED)
        logger.info("uninstalled maven %s", receipt.version)
        return receipt

    async def update(self, pattern: Optional[str] = None, force: bool = False) -> dict:
        """
        replace the installed version with a strictly newer one.

        returns:
            dict with the "old" and "new" version strings

        raises:
            NotInstalledError: if nothing is installed.
            UpdateRejectedError: if the target is not newer than what is installed.
        """
        receipt = self.load_receipt()
        if self.state() is not InstallState.LINKED or receipt is None:
            raise NotInstalledError("no maven version installed by mvnup, use install")

        target = await self.acquisition.resolve_version(pattern)
        installed = receipt.parsed_version
        if not installed < target:
            raise UpdateRejectedError(str(installed), str(target))

        await self.uninstall()
        try:
            await self._install_version(target, force)
        except BaseException:
            self.current = self.state()
            raise
        return {"old": str(installed), "new": str(target)}
