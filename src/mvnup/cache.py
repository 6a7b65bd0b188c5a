from pathlib import Path
import shutil
from typing import List


class LocalCache:
    """downloaded archives, keyed by their upstream filename."""

    def __init__(self, cache_dir: Path):
        self.cache_dir = cache_dir
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def get_artifact_path(self, filename: str) -> Path:
        # upstream filenames embed the version, so no per-version subdirectory
        return self.cache_dir / filename

    def has_artifact(self, filename: str) -> bool:
        return self.get_artifact_path(filename).is_file()

    def artifacts(self) -> List[Path]:
        return sorted(
            p for p in self.cache_dir.iterdir()
            if p.is_file() and not p.name.endswith(".part")
        )

    def size(self) -> int:
        return sum(p.stat().st_size for p in self.artifacts())

    def clear(self):
        if self.cache_dir.exists():
            shutil.rmtree(self.cache_dir)
        self.cache_dir.mkdir(parents=True)
