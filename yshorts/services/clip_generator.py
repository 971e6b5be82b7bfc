"""
Clip Generator
Renders planned clips and their thumbnails, one clip at a time
"""

from pathlib import Path
from typing import List, Optional, Tuple

from ..models.clip import ClipPlan, ShortClip
from ..utils.exceptions import ClipRenderError, NotFoundError, TranscodeError, TranscoderNotFoundError
from ..utils.logger import get_logger
from .clip_planner import ClipPlanner
from .transcoder import ASPECT_GEOMETRY, CutMode, Transcoder, aspect_filter
from .workspace import Session, WorkspaceManager

logger = get_logger()


def _discard(path: Path):
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to remove partial file {path}: {e}")


class ClipGenerator:
    """
    Drives the transcoder for each plan.

    A clip is cut with stream copy when the source frame already has the target
    geometry, falling back to a re-encode. A clip whose re-encode fails is dropped
    from the batch; a missing thumbnail never fails a clip.
    """

    def __init__(self, transcoder: Transcoder, workspace: WorkspaceManager):
        self.transcoder = transcoder
        self.workspace = workspace
        self.planner = ClipPlanner(workspace)

    async def _probe(self, source: Path) -> Optional[Tuple[int, int]]:
        try:
            return await self.transcoder.probe_dimensions(source)
        except (TranscodeError, TranscoderNotFoundError) as e:
            logger.warning(f"Could not probe {source.name}, stream copy disabled: {e.message}")
            return None

    async def render_all(self, session: Session, plans: List[ClipPlan]) -> List[ShortClip]:
        """
        Render every plan sequentially, keeping ordinal order.

        Clips whose cut failed are logged and left out of the result.
        """
        if not plans:
            return []

        source = plans[0].source_path
        if not source.is_file():
            raise NotFoundError(str(source))

        dimensions = await self._probe(source)
        rendered: List[ShortClip] = []

        for plan in plans:
            try:
                clip = await self.render_one(session, plan, source_dimensions=dimensions)
            except ClipRenderError as e:
                logger.error(f"Skipping clip {plan.index}: {e.message}")
                continue
            rendered.append(clip)

        logger.info(f"Rendered {len(rendered)}/{len(plans)} clips for session {session.id}")
        return rendered

    async def render_one(
        self,
        session: Session,
        plan: ClipPlan,
        source_dimensions: Optional[Tuple[int, int]] = None
    ) -> ShortClip:
        """
        Render a single plan into its deterministic file name, overwriting any
        earlier render of the same plan. Raises ClipRenderError if no cut
        strategy succeeds.
        """
        if not plan.source_path.is_file():
            raise NotFoundError(str(plan.source_path))
        if source_dimensions is None:
            source_dimensions = await self._probe(plan.source_path)

        output_path = self.workspace.path_for(session.id, plan.planned_file_name)
        thumbnail_path = self.workspace.path_for(session.id, plan.planned_thumbnail_name)
        filter_graph = aspect_filter(plan.aspect_ratio)

        logger.info(
            f"Rendering clip {plan.index} ({plan.start_offset:.1f}s +{plan.duration:.1f}s, "
            f"{plan.aspect_ratio.label})"
        )

        mode = await self._cut(plan, output_path, filter_graph, source_dimensions)

        thumbnail_ok = True
        try:
            await self.transcoder.thumbnail(plan.source_path, thumbnail_path, plan.start_offset, filter_graph)
        except TranscodeError as e:
            logger.warning(f"Thumbnail failed for clip {plan.index}, continuing without: {e.message}")
            _discard(thumbnail_path)
            thumbnail_ok = False

        clip = self.planner.to_preview(plan)
        clip.is_generated = True
        if thumbnail_ok:
            clip.thumbnail_path = str(thumbnail_path)
            clip.thumbnail_url = self.workspace.public_url_for(session.id, plan.planned_thumbnail_name, "thumbnail")

        logger.info(f"Clip {plan.index} rendered ({mode.value}): {output_path.name}")
        return clip

    async def render_file(self, plan: ClipPlan, output_path: Path) -> Path:
        """Cut a plan into an arbitrary path, without thumbnail (quick previews)."""
        if not plan.source_path.is_file():
            raise NotFoundError(str(plan.source_path))
        dimensions = await self._probe(plan.source_path)
        await self._cut(plan, output_path, aspect_filter(plan.aspect_ratio), dimensions)
        return output_path

    async def _cut(
        self,
        plan: ClipPlan,
        output_path: Path,
        filter_graph: str,
        source_dimensions: Optional[Tuple[int, int]]
    ) -> CutMode:
        if source_dimensions == ASPECT_GEOMETRY[plan.aspect_ratio]:
            try:
                await self.transcoder.cut(
                    plan.source_path, output_path, plan.start_offset, plan.duration,
                    None, CutMode.STREAM_COPY
                )
                return CutMode.STREAM_COPY
            except TranscodeError as e:
                logger.warning(f"Stream copy failed for clip {plan.index}, re-encoding: {e.message}")
                _discard(output_path)

        try:
            await self.transcoder.cut(
                plan.source_path, output_path, plan.start_offset, plan.duration,
                filter_graph, CutMode.RE_ENCODE
            )
        except TranscodeError as e:
            _discard(output_path)
            raise ClipRenderError(plan.index, e.message, stderr=e.stderr_tail) from e

        return CutMode.RE_ENCODE
