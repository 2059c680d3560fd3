import json
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_ROOT = Path(__file__).resolve().parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Busboard API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True

    # Database (scenario store)
    database_url: str = "sqlite+aiosqlite:///./busboard.db"
    database_echo: bool = False
    use_memory_store: bool = False

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "http://localhost:5173,http://localhost:3000"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from a comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # Output / working directories
    videos_dir: str = "./videos"
    temp_dir: str = "./temp"
    video_extension: str = "mp4"

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"

    # Render settings
    render_width: int = 1920
    render_height: int = 1080
    render_fps: float = 0.5
    render_yield_interval: int = 10
    render_audio_sample_rate: int = 44100
    render_crf: int = 28
    render_preset: str = "ultrafast"

    # Narration
    tts_voice: str = "en-US-GuyNeural"
    announcement_lead_seconds: float = 20.0
    suppress_welcome_with_emergencies: bool = True
    welcome_template: str = (
        "Welcome aboard. This bus is heading to {destination}. "
        "Please remain seated and enjoy your journey."
    )
    next_stop_template: str = "Next stop, {stop}"
    final_stop_template: str = (
        "Arriving at final stop, {stop}, Please leave the bus, thank you for riding with us."
    )
    emergency_templates: dict[str, str] = {
        "danger": "Emergency alert! {text}.",
        "traffic": "Traffic alert. {text}. Please remain patient. Thank you.",
        "weather": "Weather alert. {text}. Please be cautious. Thank you.",
        "information": "Attention passengers. {text}. Thank you.",
        "announcement": "Announcement. {text}. Thank you for your attention.",
    }

    # Audio mixing
    narration_gain: float = 5.0
    emergency_gain: float = 7.0
    effect_gain: float = 0.5
    # Emergency type -> looped underlay sound (relative paths resolve against the package)
    emergency_effect_sounds: dict[str, str] = {"danger": "media/siren-alert.mp3"}

    @computed_field
    @property
    def videos_path(self) -> Path:
        return Path(self.videos_dir)

    @computed_field
    @property
    def temp_path(self) -> Path:
        return Path(self.temp_dir)

    def resolve_effect_sound(self, emergency_type: str) -> Path | None:
        """Resolve the underlay sound for an emergency type, if one is configured."""
        raw = self.emergency_effect_sounds.get(emergency_type)
        if not raw:
            return None
        path = Path(raw)
        if not path.is_absolute():
            path = PACKAGE_ROOT / path
        return path


@lru_cache
def get_settings() -> Settings:
    return Settings()
