"""
Markdown vault document source.

Reads a directory tree of Markdown files and exposes their YAML frontmatter
as document metadata. Only the frontmatter block is parsed; body text is
ignored.
"""

import logging
from pathlib import Path
from typing import Iterator, Optional

import yaml

from .config import HolidaySource
from .types import DateKey, Document, Holiday, to_date_key

logger = logging.getLogger(__name__)


HOLIDAY_FILE_PREFIX = " Holidays "


def load_frontmatter(text: str) -> dict:
    """
    Parse the YAML frontmatter block at the top of a Markdown document.

    Returns:
        The frontmatter mapping, or {} when there is none

    Raises:
        yaml.YAMLError: If the block is not valid YAML
    """
    if not text.startswith("---"):
        return {}
    parts = text.split("---", 2)
    if len(parts) < 3:
        return {}
    data = yaml.safe_load(parts[1])
    return data if isinstance(data, dict) else {}


class MarkdownVault:
    """
    A directory of ``.md`` files.

    Document paths are POSIX paths relative to the vault root, basenames are
    file names without the extension. Hidden files and directories (names
    starting with '.') are skipped.
    """

    # Frontmatter lives at the top; skip pathological files
    MAX_FILE_SIZE = 10_000_000

    def __init__(self, root: Path, max_size: int | None = None):
        self.root = Path(root).expanduser()
        self.max_size = max_size or self.MAX_FILE_SIZE

    def _iter_files(self) -> Iterator[Path]:
        for path in sorted(self.root.rglob("*.md")):
            rel = path.relative_to(self.root)
            if any(part.startswith(".") for part in rel.parts):
                continue
            if path.is_symlink() or not path.is_file():
                continue
            yield path

    def _read(self, path: Path) -> Document:
        rel = path.relative_to(self.root).as_posix()
        metadata: dict = {}
        try:
            if path.stat().st_size > self.max_size:
                logger.warning("Skipping metadata of oversized file %s", rel)
            else:
                metadata = load_frontmatter(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read %s: %s", rel, e)
        except yaml.YAMLError as e:
            logger.warning("Malformed frontmatter in %s: %s", rel, e)
        return Document(path=rel, basename=path.stem, metadata=metadata)

    def documents(self) -> Iterator[Document]:
        for path in self._iter_files():
            yield self._read(path)

    def get(self, path: str) -> Optional[Document]:
        full = self.root / path
        if not full.is_file():
            return None
        return self._read(full)

    # -------------------------------------------------------------------------
    # Stored holidays
    # -------------------------------------------------------------------------

    def holiday_file_path(self, year: int, source: HolidaySource, folder: str = "Holidays") -> str:
        return f"{folder}/{year}{HOLIDAY_FILE_PREFIX}{source.source_id}.md"

    def load_holidays(
        self,
        year: int,
        sources: list[HolidaySource],
        folder: str = "Holidays",
    ) -> dict[DateKey, list[Holiday]]:
        """
        Aggregate the stored holiday files of ``year`` for the given sources.

        Each source has one file whose frontmatter carries ``year`` and a
        ``holidays`` list of ``{date, name}`` entries. Missing files and
        entries outside the year are skipped. Nothing is fetched.
        """
        aggregated: dict[DateKey, list[Holiday]] = {}
        for source in sources:
            country = source.country_code.upper() if source.type == "country" and source.country_code else None
            color = source.color if source.type == "country" else None
            doc = self.get(self.holiday_file_path(year, source, folder))
            if doc is None:
                continue
            fm = doc.metadata
            if fm.get("year") != year or not isinstance(fm.get("holidays"), list):
                continue
            for entry in fm["holidays"]:
                if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
                    continue
                key = to_date_key(entry.get("date"))
                if key is None or not key.startswith(f"{year:04d}-"):
                    continue
                bucket = aggregated.setdefault(key, [])
                if any(h.name == entry["name"] and h.country_code == country for h in bucket):
                    continue
                bucket.append(Holiday(date=key, name=entry["name"], color=color, country_code=country))
        logger.debug("Loaded %d holiday dates for %d from %d sources",
                     len(aggregated), year, len(sources))
        return aggregated
