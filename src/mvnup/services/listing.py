from rich.console import Console
from rich.table import Table

from ..domain.models import BatchListing
from .acquire import AcquisitionManager


def _megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):.2f}"


class ListService:
    """shows the newest versions on the mirror with their binaries."""

    def __init__(self, acquisition: AcquisitionManager, console: Console = None):
        self.acquisition = acquisition
        self.console = console or Console()

    async def list(self, limit: int = 5) -> BatchListing:
        """
        fetch and print binaries of the ``limit`` newest versions.

        versions whose binaries cannot be fetched are left out of the table
        and counted in the summary line.
        """
        versions = await self.acquisition.catalog.fetch_all()
        limit = min(max(limit, 0), len(versions))
        self.console.print(f"fetching info of {limit} versions:")
        listing = await self.acquisition.list_many(versions[:limit])

        table = Table()
        for column in ("version", "published date", "filename", "size: MB"):
            table.add_column(column)
        for entry in listing.entries:
            for binary in entry.binaries:
                table.add_row(
                    str(entry.version),
                    binary.last_modified.strftime("%Y-%m-%d %H:%M"),
                    binary.filename,
                    _megabytes(binary.size),
                )
        self.console.print(table)

        self.console.print(
            f"...A total of {len(versions)} versions were found, "
            f"{len(versions) - limit} were filtered and {len(listing.failures)} failed"
        )
        for version, reason in listing.failures:
            self.console.print(f"[yellow]  {version}: {reason}[/yellow]")
        return listing
