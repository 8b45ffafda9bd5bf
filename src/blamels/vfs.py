"""Overlay filesystem holding unsaved editor buffers.

Reads consult the in-memory layer first and fall back to the physical
filesystem, so blame sees what the user is looking at rather than what was
last saved. Writes only ever land in memory.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import BinaryIO


def _key(path: str | Path) -> str:
    return str(Path(path))


class _MemorySink(io.BytesIO):
    """Byte sink that publishes its contents to the memory layer on close."""

    def __init__(self, layer: dict[str, bytes], key: str) -> None:
        super().__init__()
        self._layer = layer
        self._layer_key = key
        layer[key] = b""

    def flush(self) -> None:
        super().flush()
        if not self.closed:
            self._layer[self._layer_key] = self.getvalue()

    def close(self) -> None:
        if not self.closed:
            self._layer[self._layer_key] = self.getvalue()
        super().close()


class OverlayFileSystem:
    def __init__(self) -> None:
        self._memory: dict[str, bytes] = {}

    def open_file(self, path: str | Path) -> BinaryIO:
        key = _key(path)
        if key in self._memory:
            return io.BytesIO(self._memory[key])
        return open(key, "rb")

    def create_file(self, path: str | Path) -> BinaryIO:
        """Create or truncate `path` in the memory layer."""
        return _MemorySink(self._memory, _key(path))

    def exists(self, path: str | Path) -> bool:
        key = _key(path)
        return key in self._memory or Path(key).exists()

    def read_text(self, path: str | Path, encoding: str = "utf-8") -> str:
        with self.open_file(path) as handle:
            return handle.read().decode(encoding)

    def write_text(self, path: str | Path, text: str, encoding: str = "utf-8") -> None:
        with self.create_file(path) as handle:
            handle.write(text.encode(encoding))
