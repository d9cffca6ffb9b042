"""
yt-dlp invocation wrapper.

Every request spawns its own yt-dlp process. Metadata calls collect the JSON
the tool prints; audio calls hand back a live stdout stream that is piped
straight into the HTTP response.
"""
import asyncio
import json
import shutil
import sys
from collections import deque
from typing import Any, AsyncIterator, Callable, Deque, List, Optional, Sequence

from loguru import logger

from app.core.config import Settings, settings
from app.core.constants import ExtractorConfig
from app.core.exceptions import ExtractionError, StreamError
from app.models import ExtractorLocation
from app.services.normalization import playlist_url, watch_url


def resolve_extractor_location(config: Settings = settings) -> ExtractorLocation:
    """
    Decide once, at startup, how yt-dlp is launched.

    Order: explicit YT_DLP_PATH, a yt-dlp binary on PATH, then the copy
    bundled with this application's Python dependencies.
    """
    if config.YT_DLP_PATH:
        location = ExtractorLocation(command=(config.YT_DLP_PATH,), origin="configured")
    elif found := shutil.which(ExtractorConfig.BINARY_NAME):
        location = ExtractorLocation(command=(found,), origin="path")
    else:
        location = ExtractorLocation(
            command=(sys.executable, "-m", ExtractorConfig.MODULE_NAME),
            origin="bundled",
        )
    logger.info(f"Using {location.origin} extractor: {' '.join(location.command)}")
    return location


def parse_extractor_output(text: str) -> Any:
    """
    Parse yt-dlp stdout.

    The whole payload is tried as one JSON document first. If that fails the
    output is read as one JSON document per line, skipping lines that do not
    parse. Returns a dict for a single document or a list otherwise.
    """
    payload = text.strip()
    if not payload:
        raise ExtractionError("Extractor returned no output")

    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        pass

    documents: List[Any] = []
    skipped = 0
    for line in payload.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            documents.append(json.loads(line))
        except json.JSONDecodeError:
            skipped += 1

    if not documents:
        raise ExtractionError("Extractor returned malformed JSON")
    if skipped:
        logger.warning(f"Skipped {skipped} unparsable line(s) of extractor output")
    return documents[0] if len(documents) == 1 else documents


def failure_message(stderr_lines: Sequence[str], returncode: Optional[int]) -> str:
    """Last meaningful stderr line, or a generic exit-code message."""
    for line in reversed(stderr_lines):
        line = line.strip()
        if line:
            return line
    return f"yt-dlp exited with code {returncode}"


async def terminate_process(process: asyncio.subprocess.Process) -> None:
    """Terminate a process, escalating to kill after a grace period."""
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=ExtractorConfig.TERMINATE_GRACE_SECONDS)
    except asyncio.TimeoutError:
        logger.warning(f"yt-dlp (pid {process.pid}) ignored SIGTERM, killing")
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()


class AudioStream:
    """
    A running yt-dlp process writing audio to its stdout.

    ``first_chunk`` must be awaited before response headers are committed:
    a failure there is still an ordinary ExtractionError. Failures while
    iterating ``chunks`` raise StreamError instead.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        chunk_size: int,
        on_close: Optional[Callable[[], None]] = None,
    ):
        self.process = process
        self.chunk_size = chunk_size
        self._on_close = on_close
        self._pending: Optional[bytes] = None
        self._closed = False
        self._stderr_tail: Deque[str] = deque(maxlen=ExtractorConfig.STDERR_TAIL_LINES)
        self._stderr_task: Optional[asyncio.Task] = None
        if process.stderr is not None:
            self._stderr_task = asyncio.ensure_future(self._drain_stderr())

    @property
    def closed(self) -> bool:
        return self._closed

    async def _drain_stderr(self) -> None:
        # Keeps the stderr pipe from filling up and blocking yt-dlp
        while True:
            line = await self.process.stderr.readline()
            if not line:
                break
            text = line.decode("utf-8", "replace").strip()
            if text:
                self._stderr_tail.append(text)

    async def _stderr_snapshot(self) -> List[str]:
        if self._stderr_task is not None and not self._stderr_task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._stderr_task), timeout=1.0)
            except asyncio.TimeoutError:
                pass
        return list(self._stderr_tail)

    async def first_chunk(self) -> bytes:
        """Read the first audio bytes; the stream is closed if that fails or is cancelled."""
        try:
            chunk = await self.process.stdout.read(self.chunk_size)
            if not chunk:
                returncode = await self.process.wait()
                message = failure_message(await self._stderr_snapshot(), returncode)
                if returncode == 0:
                    message = "yt-dlp produced no audio data"
                raise ExtractionError(message, returncode=returncode)
        except OSError as e:
            await self.close()
            raise ExtractionError(f"Failed to read audio from yt-dlp: {e}") from e
        except (ExtractionError, asyncio.CancelledError):
            await self.close()
            raise

        self._pending = chunk
        return chunk

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield audio bytes until yt-dlp exits; always closes the stream."""
        try:
            if self._pending:
                chunk, self._pending = self._pending, None
                yield chunk

            while True:
                try:
                    chunk = await self.process.stdout.read(self.chunk_size)
                except OSError as e:
                    raise StreamError(f"Audio pipe failed: {e}") from e
                if not chunk:
                    break
                yield chunk

            returncode = await self.process.wait()
            if returncode != 0:
                raise StreamError(failure_message(await self._stderr_snapshot(), returncode))
        finally:
            await self.close()

    async def close(self) -> None:
        """Terminate yt-dlp if still running and give back its slot."""
        if self._closed:
            return
        self._closed = True
        # Synchronous teardown first; the awaits below may be cancelled
        if self._on_close is not None:
            self._on_close()
        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()
        if self.process.returncode is None:
            logger.info(f"Stopping yt-dlp stream (pid {self.process.pid})")
            await terminate_process(self.process)


class ExtractorService:
    """
    Runs yt-dlp for metadata and audio.

    A semaphore bounds how many yt-dlp processes may run at once. Metadata
    calls hold a slot for the lifetime of the process; audio streams hold it
    until the stream is closed.
    """

    def __init__(
        self,
        location: ExtractorLocation,
        max_concurrency: int = 8,
        timeout: Optional[float] = 120.0,
        chunk_size: int = 64 * 1024,
    ):
        """
        Initialize the ExtractorService.

        Args:
            location: Resolved yt-dlp command.
            max_concurrency: Max yt-dlp processes alive at the same time.
            timeout: Seconds before a metadata call is killed; None or <= 0 disables it.
            chunk_size: Bytes read from the audio pipe per chunk.
        """
        self.location = location
        self.timeout = timeout if timeout and timeout > 0 else None
        self.chunk_size = chunk_size
        self._slots = asyncio.Semaphore(max(1, max_concurrency))

    @classmethod
    def from_settings(cls, location: ExtractorLocation, config: Settings = settings) -> "ExtractorService":
        return cls(
            location=location,
            max_concurrency=config.EXTRACTOR_MAX_CONCURRENCY,
            timeout=config.EXTRACTOR_TIMEOUT_SECONDS,
            chunk_size=config.STREAM_CHUNK_SIZE,
        )

    async def _spawn(self, args: Sequence[str]) -> asyncio.subprocess.Process:
        argv = self.location.argv(*args)
        logger.debug(f"Spawning: {' '.join(argv)}")
        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExtractionError(f"yt-dlp could not be started: {e}") from e

    async def _run_json(self, url: str, flags: Sequence[str]) -> Any:
        async with self._slots:
            process = await self._spawn([*flags, url])
            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError:
                await terminate_process(process)
                raise ExtractionError(f"yt-dlp timed out after {self.timeout:g}s")
            except asyncio.CancelledError:
                await terminate_process(process)
                raise

        if process.returncode != 0:
            stderr_lines = stderr.decode("utf-8", "replace").splitlines()
            message = failure_message(stderr_lines, process.returncode)
            logger.warning(f"yt-dlp failed for {url}: {message}")
            raise ExtractionError(message, returncode=process.returncode)

        return parse_extractor_output(stdout.decode("utf-8", "replace"))

    async def fetch_video(self, video_id: str) -> Any:
        """Full metadata for one video."""
        return await self._run_json(watch_url(video_id), ExtractorConfig.VIDEO_METADATA_FLAGS)

    async def fetch_playlist(self, playlist_id: str) -> Any:
        """Flat-playlist listing: playlist document plus unresolved entries."""
        return await self._run_json(playlist_url(playlist_id), ExtractorConfig.PLAYLIST_METADATA_FLAGS)

    async def open_audio_stream(self, video_id: str) -> AudioStream:
        """Start yt-dlp writing the best audio-only format to stdout."""
        await self._slots.acquire()
        try:
            process = await self._spawn([*ExtractorConfig.AUDIO_STREAM_FLAGS, watch_url(video_id)])
        except BaseException:
            self._slots.release()
            raise
        return AudioStream(process, self.chunk_size, on_close=self._slots.release)
