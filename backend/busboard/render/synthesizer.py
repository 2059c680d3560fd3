"""Text-to-speech adapter for narration cues (Microsoft Edge neural voices)."""

import logging
from pathlib import Path
from typing import Protocol, Sequence

import edge_tts

from busboard.config import get_settings
from busboard.exceptions import SynthesisError
from busboard.render.cues import AudioCue

logger = logging.getLogger(__name__)


class AudioSynthesizer(Protocol):
    """Anything that turns one text into one audio file."""

    async def synthesize(self, text: str, output_path: Path) -> Path: ...


class EdgeTTSSynthesizer:
    """Edge-TTS backed synthesizer, one network call per cue."""

    def __init__(self, voice: str | None = None, rate: str = "+0%", pitch: str = "+0Hz"):
        self.voice = voice or get_settings().tts_voice
        self.rate = rate
        self.pitch = pitch

    async def synthesize(self, text: str, output_path: Path) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            communicate = edge_tts.Communicate(
                text=text,
                voice=self.voice,
                rate=self.rate,
                pitch=self.pitch,
            )
            await communicate.save(str(output_path))
        except Exception as e:
            raise SynthesisError(f"Edge-TTS failed for {output_path.name}: {e}") from e

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise SynthesisError(f"Edge-TTS produced no audio for {output_path.name}")
        return output_path


async def synthesize_cues(synthesizer: AudioSynthesizer, cues: Sequence[AudioCue]) -> list[AudioCue]:
    """Synthesize every cue in order; a failed cue is logged and left out."""
    produced: list[AudioCue] = []
    for cue in cues:
        try:
            await synthesizer.synthesize(cue.text, cue.path)
        except Exception as e:
            logger.error(f"[TTS] Omitting cue {cue.label or cue.path.name} at {cue.start_time}s: {e}")
            continue
        produced.append(cue)

    logger.info(f"[TTS] Synthesized {len(produced)}/{len(cues)} cues")
    return produced
