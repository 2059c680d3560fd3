"""
Render pipeline for one scenario video.

This module orchestrates a single job end to end:
1. Build the physical timeline (fails fast on an empty scenario)
2. Schedule and synthesize narration cues
3. Render every frame with Pillow, yielding to the event loop between batches
4. Encode the frame sequence
5. Mix the cue audio and mux it in (or keep the video-only file when silent)

The job's temp directory is removed on every exit path. The final file is
written next to its destination and moved into place only once complete, so
a reader never sees a partially written artifact.
"""

import asyncio
import logging
import math
import os
import shutil
import time
from pathlib import Path
from typing import Callable, Sequence

from busboard.config import Settings, get_settings
from busboard.exceptions import InvalidScenarioError
from busboard.render.audio_mixer import AudioMixer
from busboard.render.cues import NarrationConfig, schedule_cues
from busboard.render.encoder import FRAME_PATTERN, Encoder, frame_filename
from busboard.render.frame_renderer import FrameRenderer
from busboard.render.frame_state import compute_frame_state
from busboard.render.synthesizer import AudioSynthesizer, EdgeTTSSynthesizer, synthesize_cues
from busboard.render.timeline import Timeline, build_timeline
from busboard.schemas.scenario import ScenarioSnapshot, Stop

logger = logging.getLogger(__name__)

RendererFactory = Callable[[str], FrameRenderer]


def frame_count_for(total_duration: float, fps: float) -> int:
    return max(0, math.ceil(total_duration * fps))


def partial_path_for(output_path: Path) -> Path:
    """Sibling path used while the artifact is being written."""
    return output_path.with_name(f"{output_path.stem}.part{output_path.suffix}")


class RenderPipeline:
    """
    Renders scenario snapshots to video files.

    Collaborators are injectable so tests can replace speech synthesis and
    FFmpeg without touching the orchestration.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        synthesizer: AudioSynthesizer | None = None,
        mixer: AudioMixer | None = None,
        encoder: Encoder | None = None,
        renderer_factory: RendererFactory | None = None,
        narration: NarrationConfig | None = None,
    ):
        self.settings = settings or get_settings()
        self.synthesizer = synthesizer or EdgeTTSSynthesizer(voice=self.settings.tts_voice)
        self.mixer = mixer or AudioMixer()
        self.encoder = encoder or Encoder(fps=self.settings.render_fps)
        self.renderer_factory = renderer_factory or self._default_renderer
        self.narration = narration or NarrationConfig.from_settings(self.settings)
        self.fps = self.settings.render_fps
        self.yield_interval = max(1, self.settings.render_yield_interval)

    def _default_renderer(self, theme: str) -> FrameRenderer:
        return FrameRenderer(self.settings.render_width, self.settings.render_height, theme)

    async def render(self, scenario: ScenarioSnapshot, output_path: str | Path, temp_dir: str | Path) -> str:
        """
        Execute the full render pipeline.

        Args:
            scenario: Immutable copy of the scenario to render
            output_path: Final artifact path
            temp_dir: Job-owned working directory (created here, removed on exit)

        Returns:
            Path to the rendered video

        Raises:
            InvalidScenarioError: Nothing to render; raised before any work
            AudioMixError / EncoderError: FFmpeg failed
        """
        output_path = Path(output_path)
        temp_dir = Path(temp_dir)

        if not scenario.stops:
            raise InvalidScenarioError(f"Scenario {scenario.id} has no stops")
        timeline = build_timeline(scenario.stops, scenario.emergencies)
        if timeline.is_empty or timeline.total_physical_duration <= 0:
            raise InvalidScenarioError(f"Scenario {scenario.id} has zero duration")

        started = time.monotonic()
        logger.info(
            f"[RENDER] Scenario {scenario.id}: {len(scenario.stops)} stops, "
            f"{len(timeline.emergency_events)} emergencies, {timeline.total_physical_duration}s"
        )

        partial = partial_path_for(output_path)
        temp_dir.mkdir(parents=True, exist_ok=True)
        try:
            cues = schedule_cues(scenario.stops, timeline, temp_dir, self.narration)
            cues = await synthesize_cues(self.synthesizer, cues)

            frame_count = await self._render_frames(scenario, timeline, temp_dir)

            video_only = temp_dir / "video_only.mp4"
            await self.encoder.encode_frames(str(temp_dir / FRAME_PATTERN), str(video_only))

            audio_path = await asyncio.to_thread(
                self.mixer.mix_cues,
                cues,
                str(temp_dir / "merged_audio.aac"),
                timeline.total_physical_duration,
            )

            output_path.parent.mkdir(parents=True, exist_ok=True)
            if audio_path:
                await self.encoder.mux(str(video_only), audio_path, str(partial))
            else:
                shutil.copyfile(video_only, partial)
            os.replace(partial, output_path)
        finally:
            self._cleanup(temp_dir)
            partial.unlink(missing_ok=True)

        logger.info(
            f"[RENDER] Scenario {scenario.id} done: {frame_count} frames, "
            f"{len(cues)} cues in {time.monotonic() - started:.1f}s -> {output_path}"
        )
        return str(output_path)

    async def _render_frames(self, scenario: ScenarioSnapshot, timeline: Timeline, temp_dir: Path) -> int:
        """Render all frames in batches, handing control back to the loop between batches."""
        renderer = self.renderer_factory(scenario.theme)
        frame_count = frame_count_for(timeline.total_physical_duration, self.fps)

        for batch_start in range(0, frame_count, self.yield_interval):
            batch_end = min(batch_start + self.yield_interval, frame_count)
            await asyncio.to_thread(
                self._render_batch, renderer, timeline, scenario.stops, temp_dir, batch_start, batch_end
            )
            await asyncio.sleep(0)

        logger.info(f"[RENDER] Rendered {frame_count} frames at {self.fps} fps")
        return frame_count

    def _render_batch(
        self,
        renderer: FrameRenderer,
        timeline: Timeline,
        stops: Sequence[Stop],
        temp_dir: Path,
        start: int,
        end: int,
    ) -> None:
        for index in range(start, end):
            elapsed = index / self.fps
            state = compute_frame_state(timeline, stops, elapsed)
            renderer.render_to_file(state, stops, temp_dir / frame_filename(index))

    def _cleanup(self, temp_dir: Path) -> None:
        try:
            shutil.rmtree(temp_dir)
            logger.debug(f"[CLEANUP] Removed {temp_dir}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"[CLEANUP] Could not remove {temp_dir}: {e}")
