"""
Test doubles for yt-dlp processes and audio streams.
"""
import asyncio
from typing import List, Optional


class FakeReader:
    """Minimal stand-in for asyncio.StreamReader."""

    def __init__(self, data: bytes = b"", error: Optional[Exception] = None, block_at_eof: bool = False):
        self._buffer = data
        self._error = error
        self._block_at_eof = block_at_eof

    async def read(self, n: int = -1) -> bytes:
        if not self._buffer:
            if self._error is not None:
                raise self._error
            if self._block_at_eof:
                await asyncio.Event().wait()
            return b""
        if n < 0:
            n = len(self._buffer)
        chunk, self._buffer = self._buffer[:n], self._buffer[n:]
        return chunk

    async def readline(self) -> bytes:
        if not self._buffer:
            return b""
        line, sep, rest = self._buffer.partition(b"\n")
        self._buffer = rest
        return line + sep


class FakeProcess:
    """Scriptable replacement for asyncio.subprocess.Process."""

    def __init__(
        self,
        stdout: bytes = b"",
        stderr: bytes = b"",
        returncode: int = 0,
        hang: bool = False,
        stdout_reader: Optional[FakeReader] = None,
    ):
        self.pid = 4242
        self.returncode: Optional[int] = None
        self.terminated = False
        self.killed = False
        self._stdout_bytes = stdout
        self._stderr_bytes = stderr
        self._final_returncode = returncode
        self._hang = hang
        self._exited = asyncio.Event()
        self.stdout = stdout_reader or FakeReader(stdout)
        self.stderr = FakeReader(stderr)

    async def communicate(self):
        if self._hang:
            await self._exited.wait()
        if self.returncode is None:
            self.returncode = self._final_returncode
        return self._stdout_bytes, self._stderr_bytes

    async def wait(self) -> int:
        if self._hang and self.returncode is None:
            await self._exited.wait()
        if self.returncode is None:
            self.returncode = self._final_returncode
        return self.returncode

    def finish(self, stdout: bytes = b"", returncode: int = 0) -> None:
        """Let a hanging process exit normally."""
        self._stdout_bytes = stdout
        self.returncode = returncode
        self._exited.set()

    def terminate(self) -> None:
        self.terminated = True
        if self.returncode is None:
            self.returncode = -15
        self._exited.set()

    def kill(self) -> None:
        self.killed = True
        if self.returncode is None:
            self.returncode = -9
        self._exited.set()


class FakeAudioStream:
    """Audio stream double for route and media-service tests."""

    def __init__(self, chunks: List[bytes], error: Optional[Exception] = None):
        self._chunks = chunks
        self._error = error
        self.closed = False

    async def first_chunk(self) -> bytes:
        return self._chunks[0]

    async def chunks(self):
        try:
            for chunk in self._chunks:
                yield chunk
            if self._error is not None:
                raise self._error
        finally:
            await self.close()

    async def close(self) -> None:
        self.closed = True


