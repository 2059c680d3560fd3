"""FFmpeg encoder: numbered frame sequence to H.264, then mux with the mixed audio."""

import asyncio
import logging

from busboard.config import get_settings
from busboard.exceptions import EncoderError

logger = logging.getLogger(__name__)

FRAME_PATTERN = "frame_%06d.png"


def frame_filename(index: int) -> str:
    return f"frame_{index:06d}.png"


class Encoder:
    def __init__(
        self,
        ffmpeg_path: str | None = None,
        fps: float | None = None,
        crf: int | None = None,
        preset: str | None = None,
    ):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.fps = fps or settings.render_fps
        self.crf = crf if crf is not None else settings.render_crf
        self.preset = preset or settings.render_preset

    def build_video_command(self, frame_pattern: str, output_path: str) -> list[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-framerate",
            str(self.fps),
            "-i",
            frame_pattern,
            "-c:v",
            "libx264",
            "-pix_fmt",
            "yuv420p",
            "-preset",
            self.preset,
            "-crf",
            str(self.crf),
            "-tune",
            "stillimage",
            output_path,
        ]

    def build_mux_command(self, video_path: str, audio_path: str, output_path: str) -> list[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-i",
            video_path,
            "-i",
            audio_path,
            "-c:v",
            "copy",
            "-c:a",
            "aac",
            "-shortest",
            output_path,
        ]

    async def encode_frames(self, frame_pattern: str, output_path: str) -> str:
        """Encode the frame sequence into a video-only file."""
        await self._run(self.build_video_command(frame_pattern, output_path), "encode")
        return output_path

    async def mux(self, video_path: str, audio_path: str, output_path: str) -> str:
        """Combine the video-only file with the mixed audio track."""
        await self._run(self.build_mux_command(video_path, audio_path, output_path), "mux")
        return output_path

    async def _run(self, cmd: list[str], stage: str) -> None:
        logger.info(f"[ENCODE] Running {stage}: {' '.join(cmd)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EncoderError(f"Could not start FFmpeg for {stage}: {e}") from e

        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            stderr_text = stderr.decode("utf-8", errors="replace")
            logger.error(f"[ENCODE] FFmpeg {stage} failed with exit code {proc.returncode}")
            raise EncoderError(f"FFmpeg {stage} failed", stderr=stderr_text)

        logger.info(f"[ENCODE] {stage} successful")
