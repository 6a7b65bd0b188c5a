import shutil
from typing import Dict, Optional, Tuple

# archive suffixes we know how to unpack, in order of preference
ARCHIVE_SUFFIXES: Tuple[str, ...] = (".tar.gz", ".zip")

_TOOLS: Dict[str, str] = {
    ".tar.gz": "tar",
    ".zip": "unzip",
}


class PlatformQuery:
    """answers which archive formats this host can unpack."""

    def tool_for(self, suffix: str) -> Optional[str]:
        tool = _TOOLS.get(suffix)
        if tool is None:
            return None
        return shutil.which(tool)

    def can_extract(self, suffix: str) -> bool:
        return self.tool_for(suffix) is not None
