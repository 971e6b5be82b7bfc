"""
Transcription Service
Speech-to-text through the AssemblyAI REST API
"""

import asyncio
import time
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx

from ..config import Settings, get_settings
from ..models.transcription import TranscriptionResult
from ..utils.exceptions import CollaboratorError, YShortsError
from ..utils.logger import get_logger
from .downloader import VideoDownloader

logger = get_logger()

UPLOAD_CHUNK_SIZE = 1024 * 1024


async def _iter_file(path: Path) -> AsyncIterator[bytes]:
    """Stream a file in chunks, reading in the thread pool."""
    loop = asyncio.get_running_loop()
    handle = await loop.run_in_executor(None, open, path, "rb")
    try:
        while True:
            chunk = await loop.run_in_executor(None, handle.read, UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()


class TranscriptionService:
    """Given a video URL, return its transcript text"""

    def __init__(
        self,
        downloader: VideoDownloader,
        scratch_dir: Path,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.downloader = downloader
        self.scratch_dir = Path(scratch_dir) / "audio"
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.settings.assemblyai_api_key:
            raise CollaboratorError("AssemblyAI", "API key is not configured (set ASSEMBLYAI_API_KEY)")
        return httpx.AsyncClient(
            base_url=self.settings.assemblyai_base_url,
            headers={"authorization": self.settings.assemblyai_api_key},
            timeout=httpx.Timeout(60.0),
            transport=self._transport
        )

    async def transcribe(self, source_ref: str) -> TranscriptionResult:
        """Download the audio track, upload it and poll until the transcript is ready."""
        audio_path: Optional[Path] = None
        try:
            async with self._client() as client:
                audio_path = await self.downloader.fetch_audio(source_ref, self.scratch_dir)
                upload_url = await self._upload(client, audio_path)
                transcript_id = await self._start(client, upload_url)
                return await self._poll(client, transcript_id)
        except (YShortsError, httpx.HTTPError) as e:
            message = getattr(e, "message", None) or str(e)
            logger.error(f"Transcription failed: {message}")
            return TranscriptionResult(success=False, error_message=f"Transcription failed: {message}")
        finally:
            if audio_path is not None:
                audio_path.unlink(missing_ok=True)

    async def _upload(self, client: httpx.AsyncClient, audio_path: Path) -> str:
        logger.info("Uploading audio file to AssemblyAI")
        response = await client.post(
            "/upload",
            content=_iter_file(audio_path),
            headers={"content-type": "application/octet-stream"}
        )
        response.raise_for_status()
        upload_url = response.json().get("upload_url")
        if not upload_url:
            raise CollaboratorError("AssemblyAI", "Upload response has no upload_url")
        return upload_url

    async def _start(self, client: httpx.AsyncClient, audio_url: str) -> str:
        logger.info("Submitting transcription request to AssemblyAI")
        response = await client.post("/transcript", json={"audio_url": audio_url})
        response.raise_for_status()
        transcript_id = response.json().get("id")
        if not transcript_id:
            raise CollaboratorError("AssemblyAI", "Transcript response has no id")
        return transcript_id

    async def _poll(self, client: httpx.AsyncClient, transcript_id: str) -> TranscriptionResult:
        logger.info(f"Polling for transcription results (ID: {transcript_id})")
        deadline = time.monotonic() + self.settings.transcription_timeout_seconds

        while True:
            response = await client.get(f"/transcript/{transcript_id}")
            response.raise_for_status()
            data = response.json()
            status = data.get("status")

            if status == "completed":
                return TranscriptionResult(success=True, text=data.get("text") or "")
            if status == "error":
                return TranscriptionResult(
                    success=False,
                    error_message=data.get("error") or "Unknown error occurred"
                )
            if status not in ("queued", "processing"):
                return TranscriptionResult(success=False, error_message=f"Unknown status: {status}")

            if time.monotonic() >= deadline:
                raise CollaboratorError("AssemblyAI", f"Transcript {transcript_id} not ready in time")
            await asyncio.sleep(self.settings.transcription_poll_interval)
