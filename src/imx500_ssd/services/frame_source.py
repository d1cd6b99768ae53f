"""Sources of raw inference metadata frames."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..core.entities import MetadataFrame

logger = logging.getLogger("services.frame_source")

DUMP_SUFFIXES = {".bin", ".raw", ".dat"}


class MetadataSource:
    """Abstract interface for every metadata frame provider."""

    def start(self) -> None:
        raise NotImplementedError

    def read(self) -> Tuple[bool, Optional[MetadataFrame]]:
        """Return the next frame, or ``(False, None)`` once exhausted."""
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


def expand_dump_paths(paths: Iterable[Path | str]) -> List[Path]:
    """Expand directories into their sorted dump files; keep files as given."""
    expanded: List[Path] = []
    for item in paths:
        path = Path(item)
        if path.is_dir():
            expanded.extend(sorted(p for p in path.iterdir() if p.suffix.lower() in DUMP_SUFFIXES))
        else:
            expanded.append(path)
    return expanded


class DumpFileSource(MetadataSource):
    """Replay metadata buffers captured to disk, one file per frame."""

    def __init__(self, paths: Iterable[Path | str], stride: int, frame_size: Tuple[int, int]) -> None:
        self._paths = expand_dump_paths(paths)
        self._stride = stride
        self._width, self._height = frame_size
        self._index = 0
        self._started = False

    def __len__(self) -> int:
        return len(self._paths)

    def start(self) -> None:
        missing = [path for path in self._paths if not path.is_file()]
        if missing:
            raise FileNotFoundError(f"Metadata dump not found at {missing[0]}")
        self._index = 0
        self._started = True
        logger.info("DumpFileSource ready with %d frame(s)", len(self._paths))

    def read(self) -> Tuple[bool, Optional[MetadataFrame]]:
        if not self._started or self._index >= len(self._paths):
            return False, None
        path = self._paths[self._index]
        self._index += 1
        frame = MetadataFrame(
            buffer=path.read_bytes(),
            stride=self._stride,
            width=self._width,
            height=self._height,
            timestamp=datetime.now(timezone.utc),
            frame_id=self._index,
            source=str(path),
        )
        return True, frame

    def stop(self) -> None:
        self._started = False


class BufferSource(MetadataSource):
    """Serve in-memory metadata buffers, as a host pipeline hands them over."""

    def __init__(self, buffers: Iterable[bytes], stride: int, frame_size: Tuple[int, int]) -> None:
        self._buffers = list(buffers)
        self._stride = stride
        self._width, self._height = frame_size
        self._index = 0

    def start(self) -> None:
        self._index = 0

    def read(self) -> Tuple[bool, Optional[MetadataFrame]]:
        if self._index >= len(self._buffers):
            return False, None
        buffer = self._buffers[self._index]
        self._index += 1
        return True, MetadataFrame(
            buffer=bytes(buffer),
            stride=self._stride,
            width=self._width,
            height=self._height,
            timestamp=datetime.now(timezone.utc),
            frame_id=self._index,
            source="memory",
        )

    def stop(self) -> None:
        self._buffers = []
