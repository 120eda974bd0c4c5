"""Real filesystem implementation using aiofiles for async I/O.

Writes go to a temp file in the target directory and are moved into place
with os.replace(), so readers never observe a partially written file.
"""

import asyncio
import contextlib
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
import time

import aiofiles  # type: ignore[import-untyped]
import aiofiles.os  # type: ignore[import-untyped]

from .models import AbsolutePath, WriteResult


def _reserve_temp_file(directory: Path, suffix: str) -> str:
    tmp = NamedTemporaryFile(dir=directory, prefix=".tmp-", suffix=suffix, delete=False)
    tmp.close()
    return tmp.name


class RealFileSystem:
    """Async filesystem backed by the local disk."""

    def join(self, base: AbsolutePath, *parts: str) -> AbsolutePath:
        result = Path(base).joinpath(*parts).resolve()
        base_resolved = Path(base).resolve()
        try:
            result.relative_to(base_resolved)
        except ValueError as e:
            raise ValueError(f"Path traversal detected: {result} escapes {base}") from e
        return AbsolutePath(result)

    async def exists(self, path: AbsolutePath) -> bool:
        return bool(await aiofiles.os.path.exists(path))

    async def is_file(self, path: AbsolutePath) -> bool:
        return bool(await aiofiles.os.path.isfile(path))

    async def is_dir(self, path: AbsolutePath) -> bool:
        return bool(await aiofiles.os.path.isdir(path))

    async def read_text(self, path: AbsolutePath, encoding: str = "utf-8") -> str:
        async with aiofiles.open(path, encoding=encoding) as f:
            content: str = await f.read()
            return content

    async def read_bytes(self, path: AbsolutePath) -> bytes:
        async with aiofiles.open(path, "rb") as f:
            content: bytes = await f.read()
            return content

    async def write_text(
        self,
        path: AbsolutePath,
        content: str,
        encoding: str = "utf-8",
    ) -> WriteResult:
        return await self._atomic_write(path, content.encode(encoding))

    async def write_bytes(self, path: AbsolutePath, content: bytes) -> WriteResult:
        return await self._atomic_write(path, content)

    async def _atomic_write(self, path: AbsolutePath, payload: bytes) -> WriteResult:
        start = time.perf_counter()
        path_obj = Path(path)
        await aiofiles.os.makedirs(path_obj.parent, exist_ok=True)

        loop = asyncio.get_running_loop()
        tmp_path = await loop.run_in_executor(
            None, _reserve_temp_file, path_obj.parent, path_obj.suffix
        )

        try:
            async with aiofiles.open(tmp_path, mode="wb") as f:
                await f.write(payload)
                await f.flush()
            await loop.run_in_executor(None, os.replace, tmp_path, str(path_obj))
        except BaseException:
            with contextlib.suppress(OSError):
                await aiofiles.os.unlink(tmp_path)
            raise

        return WriteResult(
            path=str(path_obj),
            bytes_written=len(payload),
            duration_ms=(time.perf_counter() - start) * 1000,
        )

    async def mkdirs(self, path: AbsolutePath, exist_ok: bool = True) -> None:
        await aiofiles.os.makedirs(path, exist_ok=exist_ok)

    async def listdir(self, path: AbsolutePath) -> list[str]:
        entries: list[str] = await aiofiles.os.listdir(path)
        return entries

    async def remove(self, path: AbsolutePath) -> None:
        await aiofiles.os.unlink(path)
