"""
Frame rendering with Pillow.

Draws one passenger-information frame for a ``FrameState``: a header with
the current stop and its departure countdown, the next few stops on a
vertical route line, and a footer with the final stop. During an emergency
the whole frame is replaced by a full-screen alert.

Layout coordinates are authored for 1920x1080 and scaled to the target size.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from PIL import Image, ImageDraw, ImageFont

from busboard.render.frame_state import FrameState
from busboard.schemas.scenario import Stop

logger = logging.getLogger(__name__)

BASE_WIDTH = 1920
BASE_HEIGHT = 1080


@dataclass(frozen=True)
class ThemeColors:
    background: str
    header: str
    accent: str
    text: str
    departure: str
    footer: str


THEMES: dict[str, ThemeColors] = {
    "dark": ThemeColors(
        background="#222121",
        header="#7a7a7a",
        accent="#ff8800",
        text="#ffffff",
        departure="#ffffff",
        footer="#7a7a7a",
    ),
    "light": ThemeColors(
        background="#f5f5f5",
        header="#ffffff",
        accent="#ff8800",
        text="#000000",
        departure="#000000",
        footer="#ffffff",
    ),
}

EMERGENCY_TITLES: dict[str, str] = {
    "danger": "EMERGENCY",
    "traffic": "TRAFFIC ALERT",
    "weather": "WEATHER ALERT",
    "information": "INFORMATION",
    "announcement": "ANNOUNCEMENT",
}

EMERGENCY_BACKGROUND = [(220, 38, 38), (185, 28, 28), (153, 27, 27)]
EMERGENCY_BORDER = (251, 191, 36)

# Regular and bold candidates (Linux first, then macOS)
FONT_CANDIDATES: dict[bool, list[str]] = {
    False: [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/usr/share/fonts/TTF/DejaVuSans.ttf",
        "/System/Library/Fonts/Supplemental/Arial.ttf",
        "/Library/Fonts/Arial.ttf",
    ],
    True: [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
        "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
        "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
        "/Library/Fonts/Arial Bold.ttf",
    ],
}


def format_minutes(seconds: float) -> str:
    """Countdown label shown on screen, rounded up to whole minutes."""
    return f"{math.ceil(seconds / 60)} Min."


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    hex_color = hex_color.lstrip("#")
    if len(hex_color) == 3:
        hex_color = "".join(c * 2 for c in hex_color)
    return (int(hex_color[0:2], 16), int(hex_color[2:4], 16), int(hex_color[4:6], 16))


def _blend(color: tuple[int, int, int], base: tuple[int, int, int], alpha: float) -> tuple[int, int, int]:
    return tuple(int(c * alpha + b * (1 - alpha)) for c, b in zip(color, base))  # type: ignore[return-value]


class FrameRenderer:
    """Render frame states to RGB images."""

    def __init__(self, width: int = BASE_WIDTH, height: int = BASE_HEIGHT, theme: str = "dark"):
        self.width = width
        self.height = height
        if theme not in THEMES:
            logger.warning(f"[FRAME] Unknown theme '{theme}', falling back to dark")
            theme = "dark"
        self.theme = theme
        self.colors = THEMES[theme]
        self._scale = min(width / BASE_WIDTH, height / BASE_HEIGHT)
        self._fonts: dict[tuple[int, bool], ImageFont.FreeTypeFont | ImageFont.ImageFont] = {}

    def _s(self, value: float) -> int:
        return int(round(value * self._scale))

    def _font(self, size: int, bold: bool = False):
        size = max(1, self._s(size))
        key = (size, bold)
        if key in self._fonts:
            return self._fonts[key]

        font = None
        for candidate_path in FONT_CANDIDATES[bold]:
            try:
                font = ImageFont.truetype(candidate_path, size)
                break
            except OSError:
                continue

        if font is None:
            logger.debug(f"[FRAME] No TrueType font found, using PIL default at {size}px")
            font = ImageFont.load_default(size=size)

        self._fonts[key] = font
        return font

    def _text(
        self,
        draw: ImageDraw.ImageDraw,
        x: float,
        y: float,
        text: str,
        font,
        fill,
        align: str = "left",
    ) -> None:
        """Draw text vertically centred on ``y``, anchored left/right/center at ``x``."""
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        text_width = right - left
        text_height = bottom - top
        if align == "right":
            x -= text_width
        elif align == "center":
            x -= text_width / 2
        draw.text((x - left, y - text_height / 2 - top), text, font=font, fill=fill)

    # =========================================================================
    # Public API
    # =========================================================================

    def render(self, state: FrameState, stops: Sequence[Stop]) -> Image.Image:
        image = Image.new("RGB", (self.width, self.height), self.colors.background)
        draw = ImageDraw.Draw(image)

        if state.is_emergency:
            self._draw_emergency(draw, state)
            return image

        if not (0 <= state.current_stop_index < len(stops)):
            return image

        self._draw_header(draw, state, stops)
        self._draw_upcoming(draw, state)
        self._draw_footer(draw, state, stops)
        return image

    def render_to_file(self, state: FrameState, stops: Sequence[Stop], output_path: Path) -> Path:
        output_path = Path(output_path)
        self.render(state, stops).save(output_path, "PNG")
        return output_path

    # =========================================================================
    # Regular screen
    # =========================================================================

    def _draw_header(self, draw: ImageDraw.ImageDraw, state: FrameState, stops: Sequence[Stop]) -> None:
        s = self._s
        colors = self.colors
        draw.rectangle([s(50), s(50), self.width - s(50), s(50 + 160)], fill=colors.header)

        # Line badge
        hexagon = [(106, 70), (180, 70), (216, 130), (180, 190), (106, 190), (70, 130)]
        draw.polygon([(s(x), s(y)) for x, y in hexagon], fill=colors.accent)
        self._text(draw, s(143), s(130), "M", self._font(90, bold=True), colors.text, align="center")

        current = stops[state.current_stop_index]
        self._text(draw, s(270), s(130), current.name, self._font(78, bold=True), colors.text)

        if state.departure_seconds:
            self._text(
                draw,
                self.width - s(120),
                s(130),
                f"Departure in: {format_minutes(state.departure_seconds)}",
                self._font(64, bold=True),
                colors.departure,
                align="right",
            )

    def _draw_upcoming(self, draw: ImageDraw.ImageDraw, state: FrameState) -> None:
        s = self._s
        colors = self.colors
        visible = state.upcoming
        if not visible:
            return

        line_x = s(136)
        start_y = s(280)
        bottom_y = self.height - s(320)
        spacing = (bottom_y - start_y) / (len(visible) - 1) if len(visible) > 1 else 0

        draw.line(
            [(line_x, start_y), (line_x, start_y if len(visible) == 1 else bottom_y)],
            fill=colors.accent,
            width=max(1, s(12)),
        )
        if len(visible) > 1:
            draw.polygon(
                [(line_x, bottom_y + s(40)), (line_x - s(25), bottom_y - s(10)), (line_x + s(25), bottom_y - s(10))],
                fill=colors.accent,
            )

        for i, stop in enumerate(visible):
            y = start_y + i * spacing
            radius = s(20)
            draw.ellipse([line_x - radius, y - radius, line_x + radius, y + radius], fill=colors.text)
            if i == 0:
                ring = s(24)
                draw.ellipse(
                    [line_x - ring, y - ring, line_x + ring, y + ring],
                    outline=colors.accent,
                    width=max(1, s(4)),
                )

            self._text(draw, s(270), y, stop.name, self._font(94, bold=(i == 0)), colors.text)
            self._text(
                draw,
                self.width - s(120),
                y,
                format_minutes(stop.seconds_remaining),
                self._font(94),
                colors.text,
                align="right",
            )

    def _draw_footer(self, draw: ImageDraw.ImageDraw, state: FrameState, stops: Sequence[Stop]) -> None:
        s = self._s
        colors = self.colors
        bar_height = s(180)
        bar_y = self.height - bar_height - s(50)
        draw.rectangle([s(50), bar_y, self.width - s(50), bar_y + bar_height], fill=colors.footer)

        font = self._font(84, bold=True)
        center_y = bar_y + bar_height / 2
        self._text(draw, s(120), center_y, stops[-1].name, font, colors.text)
        self._text(
            draw,
            self.width - s(120),
            center_y,
            format_minutes(state.terminal_seconds),
            font,
            colors.text,
            align="right",
        )

    # =========================================================================
    # Emergency screen
    # =========================================================================

    def _draw_emergency(self, draw: ImageDraw.ImageDraw, state: FrameState) -> None:
        s = self._s
        event = state.event
        emergency_type = getattr(event, "emergency_type", "danger")
        message = getattr(event, "text", "") or "EMERGENCY"
        title = EMERGENCY_TITLES.get(emergency_type, EMERGENCY_TITLES["danger"])

        background = hex_to_rgb(self.colors.background)
        pulse = abs(math.sin(state.elapsed * 3)) * 0.3 + 0.7

        # Vertical three-stop gradient
        top, middle, bottom = (_blend(c, background, pulse) for c in EMERGENCY_BACKGROUND)
        half = max(1, self.height // 2)
        for y in range(self.height):
            if y < half:
                t = y / half
                color = tuple(int(a + (b - a) * t) for a, b in zip(top, middle))
            else:
                t = (y - half) / max(1, self.height - half)
                color = tuple(int(a + (b - a) * t) for a, b in zip(middle, bottom))
            draw.line([(0, y), (self.width, y)], fill=color)

        # Hazard stripes
        offset = s((state.elapsed * 100) % 100)
        step = max(1, s(100))
        for i in range(-5, self.width // step + self.height // step + 5):
            x = i * step - offset
            draw.line([(x, 0), (x + self.height, self.height)], fill=EMERGENCY_BORDER, width=max(1, s(12)))

        flash = 1.0 if abs(math.sin(state.elapsed * 4)) > 0.5 else 0.4
        draw.rectangle(
            [s(20), s(20), self.width - s(20), self.height - s(20)],
            outline=_blend(EMERGENCY_BORDER, top, flash),
            width=max(1, s(15)),
        )
        draw.rectangle(
            [s(35), s(35), self.width - s(35), self.height - s(35)],
            outline=_blend((255, 255, 255), top, flash * 0.5),
            width=max(1, s(8)),
        )

        self._text(draw, self.width / 2, s(220), title, self._font(64, bold=True), EMERGENCY_BORDER, align="center")

        font = self._font(96, bold=True)
        y = s(380)
        for line in self._wrap(draw, message, font, self.width - s(200)):
            self._text(draw, self.width / 2 + s(4), y + s(4), line, font, (0, 0, 0), align="center")
            self._text(draw, self.width / 2, y, line, font, (255, 255, 255), align="center")
            y += s(110)

    def _wrap(self, draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> list[str]:
        """Greedy word wrap; a single overlong word stays on its own line."""
        lines: list[str] = []
        line = ""
        for word in text.split():
            candidate = f"{line} {word}".strip()
            if line and draw.textlength(candidate, font=font) > max_width:
                lines.append(line)
                line = word
            else:
                line = candidate
        if line:
            lines.append(line)
        return lines
