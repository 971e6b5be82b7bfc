"""
Shorts Service
Preview/commit facade over download, planning and rendering
"""

import asyncio
import shutil
import uuid
from dataclasses import replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError

from ..config import Settings, get_settings
from ..models.clip import ClipPlan, ShortClip, ShortClipGenerationRequest, ShortsGenerationResponse
from ..models.moment import AspectRatio, MomentDescriptor, parse_aspect_ratio
from ..utils.exceptions import DownloadError, NotFoundError, YShortsError
from ..utils.logger import get_logger
from .clip_generator import ClipGenerator
from .clip_planner import ClipPlanner
from .downloader import SourceReference, VideoDownloader, parse_source_reference
from .moment_extractor import MomentExtractor
from .transcoder import Transcoder
from .transcription import TranscriptionService
from .workspace import (
    Session,
    WorkspaceManager,
    clip_file_name,
    source_file_name,
    thumbnail_file_name,
)

logger = get_logger()

PHASE_VALIDATION = "validation"
PHASE_TRANSCRIPTION = "transcription"
PHASE_EXTRACTION = "extraction"
PHASE_CLIP_CREATION = "clip_creation"

MomentInput = Union[MomentDescriptor, Dict[str, Any]]


def _failure(error: YShortsError, phase: str) -> ShortsGenerationResponse:
    logger.error(f"Failed during {phase} [{error.code}]: {error.message}")
    return ShortsGenerationResponse(
        success=False,
        error_message=f"Failed to create shorts: {error.message}",
        failed_phase=phase
    )


def _as_moments(moments: Iterable[MomentInput]) -> List[MomentDescriptor]:
    """Coerce raw dicts to moments; an entry that is not a moment at all is dropped."""
    result = []
    for position, moment in enumerate(moments, start=1):
        if isinstance(moment, MomentDescriptor):
            result.append(moment)
            continue
        try:
            result.append(MomentDescriptor.model_validate(moment))
        except ValidationError as e:
            logger.warning(f"Skipping moment {position}: {e.errors()[0].get('msg')}")
    return result


class ShortsService:
    """Entry point for callers: preview moments, then render the chosen ones"""

    def __init__(
        self,
        workspace: WorkspaceManager,
        downloader: VideoDownloader,
        generator: ClipGenerator,
        transcriber: Optional[TranscriptionService] = None,
        extractor: Optional[MomentExtractor] = None,
        settings: Optional[Settings] = None
    ):
        self.workspace = workspace
        self.downloader = downloader
        self.generator = generator
        self.planner = ClipPlanner(workspace)
        self.transcriber = transcriber
        self.extractor = extractor
        self.settings = settings or get_settings()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ShortsService":
        """Wire the full service graph from configuration."""
        settings = settings or get_settings()
        workspace = WorkspaceManager(settings.output_dir, settings.temp_dir, settings.api_prefix)
        transcoder = Transcoder(settings)
        downloader = VideoDownloader(transcoder, settings)
        return cls(
            workspace=workspace,
            downloader=downloader,
            generator=ClipGenerator(transcoder, workspace),
            transcriber=TranscriptionService(downloader, workspace.scratch_root, settings),
            extractor=MomentExtractor(settings),
            settings=settings
        )

    # ------------------------------------------------------------------
    # Preview / commit
    # ------------------------------------------------------------------

    async def create_previews(
        self,
        source_ref: str,
        moments: Iterable[MomentInput],
        aspect_ratio: Any = AspectRatio.LANDSCAPE
    ) -> ShortsGenerationResponse:
        """
        Download the source and plan one preview per valid moment.

        Nothing is rendered; every returned clip has ``is_generated=False``.
        """
        prepared = await self._prepare(source_ref, moments, aspect_ratio)
        if isinstance(prepared, ShortsGenerationResponse):
            return prepared

        session, source_path, plans = prepared
        previews = [self.planner.to_preview(plan) for plan in plans]
        return self._response(session, source_path, previews)

    async def generate_selected(
        self,
        source_video_path: Union[str, Path],
        selected: Iterable[ShortClipGenerationRequest]
    ) -> ShortsGenerationResponse:
        """Render the previews a client picked, reusing the session's source copy."""
        selected = list(selected)
        try:
            aspects = [parse_aspect_ratio(request.aspect_ratio) for request in selected]
            session = self.workspace.session_for_file(source_video_path)
        except YShortsError as e:
            return _failure(e, PHASE_CLIP_CREATION if isinstance(e, NotFoundError) else PHASE_VALIDATION)

        source_path = Path(source_video_path).resolve()
        plans: Dict[Tuple[int, AspectRatio], ClipPlan] = {}
        for request, aspect in zip(selected, aspects):
            plans[(request.id, aspect)] = ClipPlan(
                index=request.id,
                start_offset=request.start_seconds,
                duration=request.end_seconds - request.start_seconds,
                aspect_ratio=aspect,
                source_path=source_path,
                planned_file_name=clip_file_name(request.id, aspect),
                planned_thumbnail_name=thumbnail_file_name(request.id, aspect),
                session_id=session.id,
                content=request.content
            )

        ordered = [plans[key] for key in sorted(plans, key=lambda k: (k[0], k[1].value))]
        logger.info(f"Generating {len(ordered)} selected shorts in session {session.id}")
        return await self._render(session, source_path, ordered)

    async def create_shorts(
        self,
        source_ref: str,
        moments: Iterable[MomentInput],
        aspect_ratio: Any = AspectRatio.LANDSCAPE
    ) -> ShortsGenerationResponse:
        """Preview and render every valid moment in one call."""
        prepared = await self._prepare(source_ref, moments, aspect_ratio)
        if isinstance(prepared, ShortsGenerationResponse):
            return prepared

        session, source_path, plans = prepared
        return await self._render(session, source_path, plans)

    async def render_quick_preview(
        self,
        source_video_path: Union[str, Path],
        moment: MomentInput,
        aspect_ratio: Any = AspectRatio.LANDSCAPE
    ) -> ShortsGenerationResponse:
        """
        Render a single moment into the shared preview scratch area under a
        unique name. Stale previews are reaped first.
        """
        try:
            aspect = parse_aspect_ratio(aspect_ratio)
            session = self.workspace.session_for_file(source_video_path)
        except YShortsError as e:
            return _failure(e, PHASE_CLIP_CREATION if isinstance(e, NotFoundError) else PHASE_VALIDATION)

        self.workspace.reap_stale(
            self.workspace.preview_dir,
            older_than=timedelta(minutes=self.settings.preview_retention_minutes)
        )

        source_path = Path(source_video_path).resolve()
        plans = self.planner.plan(source_path, _as_moments([moment]), aspect, session.id)
        if not plans:
            return self._response(session, source_path, [])

        file_name = f"preview_{uuid.uuid4().hex}.mp4"
        plan = replace(plans[0], planned_file_name=file_name)
        output_path = self.workspace.preview_dir / file_name

        try:
            await self.generator.render_file(plan, output_path)
        except YShortsError as e:
            return _failure(e, PHASE_CLIP_CREATION)

        clip = self.planner.to_preview(plan)
        url = f"{self.settings.api_prefix}/quick/{file_name}"
        clip = clip.model_copy(update={
            "file_path": str(output_path),
            "preview_url": url,
            "download_url": url,
            "is_generated": True
        })
        return self._response(session, source_path, [clip])

    # ------------------------------------------------------------------
    # Full pipeline
    # ------------------------------------------------------------------

    async def run_pipeline(self, source_ref: str, aspect_ratio: Any = AspectRatio.LANDSCAPE) -> ShortsGenerationResponse:
        """Transcribe, extract best moments and render them, tagging the failing phase."""
        try:
            parse_aspect_ratio(aspect_ratio)
            parse_source_reference(source_ref)
        except YShortsError as e:
            return _failure(e, PHASE_VALIDATION)

        if self.transcriber is None or self.extractor is None:
            raise RuntimeError("ShortsService was built without transcription/extraction collaborators")

        transcript = await self.transcriber.transcribe(source_ref)
        if not transcript.success:
            return ShortsGenerationResponse(
                success=False,
                error_message=transcript.error_message,
                failed_phase=PHASE_TRANSCRIPTION
            )

        extracted = await self.extractor.extract_moments(transcript.text)
        if not extracted.success:
            return ShortsGenerationResponse(
                success=False,
                error_message=extracted.error_message,
                failed_phase=PHASE_EXTRACTION
            )

        logger.info(f"Pipeline found {len(extracted.moments)} moments, creating shorts")
        return await self.create_shorts(source_ref, extracted.moments, aspect_ratio)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _prepare(
        self,
        source_ref: str,
        moments: Iterable[MomentInput],
        aspect_ratio: Any
    ) -> Union[ShortsGenerationResponse, Tuple[Session, Path, List[ClipPlan]]]:
        try:
            aspect = parse_aspect_ratio(aspect_ratio)
            ref = parse_source_reference(source_ref)
            moment_list = _as_moments(moments)
        except YShortsError as e:
            return _failure(e, PHASE_VALIDATION)

        logger.info(f"Creating shorts from {len(moment_list)} moments for video: {ref.url}")

        try:
            session, source_path = await self._acquire_source(ref)
        except YShortsError as e:
            return _failure(e, PHASE_CLIP_CREATION)

        plans = self.planner.plan(source_path, moment_list, aspect, session.id)
        return session, source_path, plans

    async def _acquire_source(self, ref: SourceReference) -> Tuple[Session, Path]:
        """Download into the session scratch folder and keep the source next to the clips."""
        session = self.workspace.new_session(ref.video_id)
        source_path = self.workspace.path_for(session.id, source_file_name(ref.video_id))
        loop = asyncio.get_running_loop()

        try:
            downloaded = await self.downloader.fetch(ref, session.scratch_dir)
            await loop.run_in_executor(None, shutil.move, str(downloaded), str(source_path))
        except (YShortsError, OSError) as e:
            await loop.run_in_executor(None, self.workspace.discard_session, session)
            if isinstance(e, YShortsError):
                raise
            raise DownloadError(f"Could not store source video: {e}", url=ref.url) from e

        try:
            await loop.run_in_executor(None, shutil.rmtree, session.scratch_dir)
        except OSError as e:
            logger.warning(f"Failed to remove scratch folder {session.scratch_dir}: {e}")
        return session, source_path

    async def _render(self, session: Session, source_path: Path, plans: List[ClipPlan]) -> ShortsGenerationResponse:
        try:
            clips = await self.generator.render_all(session, plans)
        except YShortsError as e:
            return _failure(e, PHASE_CLIP_CREATION)
        return self._response(session, source_path, clips)

    def _response(self, session: Session, source_path: Path, shorts: List[ShortClip]) -> ShortsGenerationResponse:
        return ShortsGenerationResponse(
            success=True,
            shorts=shorts,
            output_directory=str(session.output_dir),
            source_video_path=str(source_path),
            folder_name=session.id,
            folder_path=self.workspace.folder_url_for(session.id)
        )


_shorts_service: Optional[ShortsService] = None


def get_shorts_service() -> ShortsService:
    """Return singleton shorts service."""
    global _shorts_service
    if _shorts_service is None:
        _shorts_service = ShortsService.from_settings()
    return _shorts_service
