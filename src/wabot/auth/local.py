"""
File-tree backend: ``<directory>/<uuid>/<digest>.enc``.
"""

import asyncio
import shutil
from pathlib import Path
from typing import Optional, Union


class LocalBackend:
    def __init__(self, directory: Union[str, Path], uuid: str):
        self.directory = Path(directory).expanduser().resolve() / str(uuid)

    def _path(self, digest: str) -> Path:
        return self.directory / f"{digest}.enc"

    async def open(self) -> None:
        await asyncio.to_thread(self.directory.mkdir, parents=True, exist_ok=True)

    async def read(self, digest: str) -> Optional[bytes]:
        def _read() -> Optional[bytes]:
            try:
                return self._path(digest).read_bytes()
            except FileNotFoundError:
                return None

        return await asyncio.to_thread(_read)

    async def write(self, digest: str, blob: bytes) -> None:
        def _write() -> None:
            path = self._path(digest)
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_bytes(blob)
            tmp.replace(path)

        await asyncio.to_thread(_write)

    async def delete(self, digest: str) -> None:
        await asyncio.to_thread(self._path(digest).unlink, missing_ok=True)

    async def clear(self) -> None:
        await asyncio.to_thread(shutil.rmtree, self.directory, ignore_errors=True)
