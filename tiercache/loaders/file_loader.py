"""
File-backed loader reading delimited records.

Each record's first column is the key; the remaining non-empty columns
(trimmed) form the value as a list of strings.  Records for the same key
are concatenated in file order, across rows and across files.
"""

import csv
import logging
from pathlib import Path
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Union

from tiercache.exceptions import LoaderError
from tiercache.loaders.base import CacheLoader

logger = logging.getLogger(__name__)


class FileBackedLoader(CacheLoader):
    """Load values from one or more CSV-style files.

    Files are re-read on every call, so edits on disk are visible to the
    next miss.  Missing files are skipped.

    Args:
        paths: Files to scan, in priority order.
        delimiter: Single-character field delimiter.
        header: Skip the first record of each file.
        encoding: Text encoding of the files.
    """

    def __init__(
        self,
        paths: Sequence[Union[str, Path]],
        delimiter: str = ",",
        header: bool = False,
        encoding: str = "utf-8",
    ) -> None:
        if len(delimiter) != 1:
            raise ValueError("delimiter must be a single character")
        self._paths = [Path(p) for p in paths]
        self._delimiter = delimiter
        self._header = header
        self._encoding = encoding

    def load(self, key: Hashable) -> Optional[List[str]]:
        return self.load_all([key]).get(key)

    def load_all(self, keys: Iterable[Hashable]) -> Dict[Hashable, List[str]]:
        wanted = {str(k): k for k in keys}
        result: Dict[Hashable, List[str]] = {}

        for path in self._paths:
            if not path.exists():
                logger.debug("Loader file missing, skipped", extra={"path": str(path)})
                continue
            try:
                with open(path, "r", encoding=self._encoding, newline="") as fh:
                    reader = csv.reader(fh, delimiter=self._delimiter)
                    if self._header:
                        next(reader, None)
                    for row in reader:
                        if not row:
                            continue
                        record_key = row[0].strip()
                        if record_key not in wanted:
                            continue
                        values = [v.strip() for v in row[1:] if v.strip()]
                        result.setdefault(wanted[record_key], []).extend(values)
            except (OSError, UnicodeDecodeError, csv.Error) as exc:
                raise LoaderError(f"Failed to read {path}: {exc}") from exc

        logger.debug(
            "Records loaded",
            extra={"requested": len(wanted), "found": len(result)},
        )
        return result
