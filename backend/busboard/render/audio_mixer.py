"""
Audio mixing module using FFmpeg.

Builds a single ``filter_complex`` graph out of the scheduled cues:

- a silent base track (``anullsrc``) as long as the whole physical timeline
- every narration clip delayed to its start time at the narration gain
- every emergency clip delayed the same way at the emergency gain, with a
  type-specific effect sound looped, trimmed to the emergency duration and
  mixed underneath at a lower gain
- a final ``amix`` with ``duration=longest`` so the mix never ends before
  the silent base does

Graph construction follows cue order, so identical inputs always produce an
identical command.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from busboard.config import get_settings
from busboard.exceptions import AudioMixError
from busboard.render.cues import AudioCue

logger = logging.getLogger(__name__)

EffectResolver = Callable[[str], Path | None]


@dataclass
class MixGraph:
    """Input arguments and filter chains for one mix."""

    input_args: list[str] = field(default_factory=list)
    filter_parts: list[str] = field(default_factory=list)
    output_label: str = "outa"

    @property
    def filter_complex(self) -> str:
        return ";".join(self.filter_parts)


class AudioMixer:
    """
    FFmpeg-based cue mixer.

    Gains and the effect-sound lookup default to the application settings.
    """

    def __init__(
        self,
        ffmpeg_path: str | None = None,
        sample_rate: int | None = None,
        narration_gain: float | None = None,
        emergency_gain: float | None = None,
        effect_gain: float | None = None,
        effect_resolver: EffectResolver | None = None,
    ):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.sample_rate = sample_rate or settings.render_audio_sample_rate
        self.narration_gain = narration_gain if narration_gain is not None else settings.narration_gain
        self.emergency_gain = emergency_gain if emergency_gain is not None else settings.emergency_gain
        self.effect_gain = effect_gain if effect_gain is not None else settings.effect_gain
        self.effect_resolver = effect_resolver or settings.resolve_effect_sound

    def _effect_for(self, emergency_type: str | None) -> Path | None:
        """Looped underlay for an emergency type, or None to mix the clip alone."""
        path = self.effect_resolver(emergency_type or "danger")
        if path is None:
            return None
        if not Path(path).exists():
            logger.warning(f"[AUDIO MIX] Effect sound for '{emergency_type}' not found: {path}")
            return None
        return Path(path)

    def build_filter_graph(self, cues: Sequence[AudioCue], total_duration: float) -> MixGraph:
        """Build inputs and filter chains, one sub-mix per cue in cue order."""
        graph = MixGraph()
        graph.input_args.extend(
            [
                "-f",
                "lavfi",
                "-i",
                f"anullsrc=r={self.sample_rate}:cl=stereo:d={total_duration}",
            ]
        )

        input_index = 1
        mix_inputs: list[str] = []

        for i, cue in enumerate(cues):
            delay = int(cue.start_time * 1000)
            graph.input_args.extend(["-i", str(cue.path)])

            if cue.is_emergency and cue.duration:
                graph.filter_parts.append(
                    f"[{input_index}:a]volume={self.emergency_gain},adelay={delay}|{delay}[a{i}]"
                )
                input_index += 1

                effect = self._effect_for(cue.emergency_type)
                if effect is not None:
                    graph.input_args.extend(["-i", str(effect)])
                    graph.filter_parts.append(
                        f"[{input_index}:a]aloop=loop=-1:size=2e+09,atrim=0:{cue.duration},"
                        f"volume={self.effect_gain},adelay={delay}|{delay}[effect{i}]"
                    )
                    input_index += 1
                    graph.filter_parts.append(
                        f"[a{i}][effect{i}]amix=inputs=2:duration=longest[emergency{i}]"
                    )
                else:
                    graph.filter_parts.append(f"[a{i}]anull[emergency{i}]")
                mix_inputs.append(f"[emergency{i}]")
            else:
                graph.filter_parts.append(
                    f"[{input_index}:a]volume={self.narration_gain},adelay={delay}|{delay}[a{i}]"
                )
                input_index += 1
                mix_inputs.append(f"[a{i}]")

        graph.filter_parts.append(
            f"[0:a]{''.join(mix_inputs)}amix=inputs={len(cues) + 1}:duration=longest[{graph.output_label}]"
        )
        return graph

    def build_command(self, cues: Sequence[AudioCue], output_path: str, total_duration: float) -> list[str]:
        graph = self.build_filter_graph(cues, total_duration)
        return [
            self.ffmpeg_path,
            "-y",
            *graph.input_args,
            "-filter_complex",
            graph.filter_complex,
            "-map",
            f"[{graph.output_label}]",
            "-t",
            str(total_duration),  # Limit output to timeline duration
            "-c:a",
            "aac",
            "-ar",
            str(self.sample_rate),
            output_path,
        ]

    def mix_cues(self, cues: Sequence[AudioCue], output_path: str, total_duration: float) -> str | None:
        """
        Mix all cues into one track.

        Args:
            cues: Synthesized cues, ordered by start time
            output_path: Output audio file path
            total_duration: Physical timeline length in seconds

        Returns:
            Path to the mixed audio file, or None when there is nothing to mix
        """
        if not cues:
            logger.info("[AUDIO MIX] No cues, skipping audio track")
            return None

        cmd = self.build_command(cues, output_path, total_duration)
        logger.info(f"[AUDIO MIX] Mixing {len(cues)} cues over {total_duration}s")
        logger.debug(f"[AUDIO MIX] Command: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise AudioMixError(f"Could not start FFmpeg: {e}") from e

        if result.returncode != 0:
            logger.error(f"[AUDIO MIX] FFmpeg exited with {result.returncode}")
            raise AudioMixError(stderr=result.stderr)

        return output_path
