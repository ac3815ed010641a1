"""JSON Lines helpers backed by orjson."""

from collections.abc import Iterator
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Union

import orjson

from fiscal_assistant.logging import get_logger

logger = get_logger(__name__)


class JSONLReader:
    """Reader for JSONL (JSON Lines) files."""

    def __init__(self, file_path: Union[str, Path]) -> None:
        self.file_path = Path(file_path)

    def iterate(self) -> Iterator[Dict[str, Any]]:
        """
        Iterate over the records of the file, skipping blank lines.

        A missing file yields nothing. Lines that are not a JSON object, such
        as one cut short by a crash mid-append, are skipped with a warning.
        """
        if not self.file_path.exists():
            return
        with open(self.file_path, "rb") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = orjson.loads(line)
                except orjson.JSONDecodeError as exc:
                    logger.warning(f"skipping undecodable line {lineno} of {self.file_path}: {exc}")
                    continue
                if not isinstance(record, dict):
                    logger.warning(f"skipping non-object line {lineno} of {self.file_path}")
                    continue
                yield record

    def read_all(self) -> List[Dict[str, Any]]:
        return list(self.iterate())

    def tail(self, n: int) -> List[Dict[str, Any]]:
        """Return the last ``n`` records."""
        if n <= 0:
            return []
        records: List[Dict[str, Any]] = []
        for record in self.iterate():
            records.append(record)
            if len(records) > n:
                records.pop(0)
        return records


class JSONLWriter:
    """Writer for JSONL (JSON Lines) files."""

    def __init__(self, file_path: Union[str, Path], mode: str = "w") -> None:
        """
        Initialize JSONL writer.

        Args:
            file_path: Path to the output JSONL file
            mode: File open mode ("w" for write, "a" for append)
        """
        self.file_path = Path(file_path)
        self.mode = mode
        self._file: Optional[IO[Any]] = None

        # Create parent directory if it doesn't exist
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

    def __enter__(self) -> "JSONLWriter":
        self._file = open(self.file_path, self.mode + "b")
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def write(self, data: Dict[str, Any]) -> None:
        json_bytes = orjson.dumps(
            data,
            option=orjson.OPT_APPEND_NEWLINE | orjson.OPT_NON_STR_KEYS,
        )
        if self._file:
            self._file.write(json_bytes)


def read_jsonl(file_path: Union[str, Path]) -> List[Dict[str, Any]]:
    return JSONLReader(file_path).read_all()


def append_jsonl(data: Dict[str, Any], file_path: Union[str, Path]) -> None:
    """
    Append a single record to a JSONL file.

    Args:
        data: Dictionary to append
        file_path: Path to the JSONL file
    """
    with JSONLWriter(file_path, "a") as writer:
        writer.write(data)
