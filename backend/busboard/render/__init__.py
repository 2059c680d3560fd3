from busboard.render.audio_mixer import AudioMixer
from busboard.render.encoder import Encoder
from busboard.render.frame_renderer import FrameRenderer
from busboard.render.pipeline import RenderPipeline
from busboard.render.timeline import Timeline, build_timeline

__all__ = [
    "RenderPipeline",
    "AudioMixer",
    "Encoder",
    "FrameRenderer",
    "Timeline",
    "build_timeline",
]
