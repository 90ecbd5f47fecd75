# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Transient storage for uploaded alert files.

An upload is copied to a randomly named file under the upload directory for
the lifetime of one request and removed afterwards. :meth:`UploadStore.hold`
is the only way request handling acquires a file, and it releases the file in
``finally``, so every exit path (rejection, delivery success, delivery
failure, unexpected error) cleans up exactly once.

File system calls run in worker threads so the event loop never blocks on
disk I/O.

Release is best-effort: a file that is already gone or cannot be removed is
logged and otherwise ignored, so it never changes the response.

Example:
    Holding an upload for the duration of a request::

        store = UploadStore("uploads")
        async with store.hold(upload) as stored:
            data = await stored.read_bytes()
        # the temporary file no longer exists here
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from .logger import get_logger

CHUNK_SIZE = 1024 * 1024

logger = get_logger("UploadStore")


class TransientUpload:
    """Temporary copy of one uploaded file.

    Attributes:
        path: Location of the temporary copy.
        original_name: Client-supplied file name, possibly empty.
        size: Number of bytes written.
        released: True once :meth:`release` has run.
    """

    def __init__(self, path: Path, original_name: str, size: int = 0):
        self.path = path
        self.original_name = original_name
        self.size = size
        self.released = False

    @property
    def name(self) -> str:
        """Client file name, or the temporary name when the client sent none."""
        return self.original_name or self.path.name

    async def read_bytes(self) -> bytes:
        return await asyncio.to_thread(self.path.read_bytes)

    async def release(self) -> None:
        """Remove the temporary file. Safe to call more than once."""
        if self.released:
            return
        self.released = True
        try:
            await asyncio.to_thread(self.path.unlink)
        except OSError as exc:
            logger.warning("Could not remove temporary upload %s: %s", self.path, exc)


class UploadStore:
    """Writes uploads into ``upload_dir`` and hands out scoped handles."""

    def __init__(self, upload_dir: str | Path):
        self.upload_dir = Path(upload_dir)

    async def save(self, upload: Any, original_name: str = "") -> TransientUpload:
        """Copy ``upload`` (anything with an async ``read(size)``) to a new file."""
        await asyncio.to_thread(self.upload_dir.mkdir, parents=True, exist_ok=True)
        handle = TransientUpload(self.upload_dir / uuid.uuid4().hex, original_name)
        fh = await asyncio.to_thread(handle.path.open, "wb")
        try:
            try:
                while chunk := await upload.read(CHUNK_SIZE):
                    await asyncio.to_thread(fh.write, chunk)
                    handle.size += len(chunk)
            finally:
                await asyncio.to_thread(fh.close)
        except BaseException:
            await self.release(handle)
            raise
        return handle

    async def release(self, handle: TransientUpload) -> None:
        await handle.release()

    @asynccontextmanager
    async def hold(self, upload: Any, original_name: str = "") -> AsyncIterator[TransientUpload]:
        """Save ``upload`` and release it when the block exits, however it exits."""
        handle = await self.save(upload, original_name)
        try:
            yield handle
        finally:
            await self.release(handle)
