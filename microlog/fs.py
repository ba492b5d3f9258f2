# -*- coding: utf-8 -*-
"""Async filesystem primitives used by the vault backend.

These are deliberately thin: no path validation happens here. The vault
backend validates every path before calling into a :class:`FileSystem`.
"""
from __future__ import annotations

import contextlib
import os
from typing import List, Optional, Protocol

import aiofiles
import aiofiles.os


class FileSystem(Protocol):
    """Interface for the file operations the vault backend needs."""

    async def read_file(self, path: str) -> Optional[str]:
        """Return file content, or None when the file does not exist."""
        ...

    async def write_file(self, path: str, content: str) -> None:
        ...

    async def delete_file(self, path: str) -> None:
        ...

    async def list_directory(self, path: str) -> List[str]:
        """Return entry names, or an empty list when the directory is missing."""
        ...

    async def ensure_directory(self, path: str) -> None:
        ...


class LocalFileSystem:
    """:class:`FileSystem` over the local disk using aiofiles."""

    async def read_file(self, path: str) -> Optional[str]:
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def write_file(self, path: str, content: str) -> None:
        await aiofiles.os.makedirs(os.path.dirname(path), exist_ok=True)
        tmp = f"{path}.tmp"
        try:
            async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
                await f.write(content)
            await aiofiles.os.replace(tmp, path)
        except BaseException:
            with contextlib.suppress(OSError):
                await aiofiles.os.remove(tmp)
            raise

    async def delete_file(self, path: str) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass

    async def list_directory(self, path: str) -> List[str]:
        try:
            return sorted(await aiofiles.os.listdir(path))
        except FileNotFoundError:
            return []

    async def ensure_directory(self, path: str) -> None:
        await aiofiles.os.makedirs(path, exist_ok=True)
