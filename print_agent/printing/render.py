"""
Order rendering for the print agent.

- Render a Jinja2 text template with the order data
- Lay the resulting lines out on a grayscale Pillow image sized for the
  printer (headings, separators, wrapped body text)

Template line conventions:
    "## text"  heading, larger font
    "---"      horizontal rule
    anything else is body text, word-wrapped to the paper width
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from datetime import datetime
from typing import Any, List, Optional

from jinja2 import ChainableUndefined, ChoiceLoader, Environment, FileSystemLoader, PackageLoader, TemplateError
from PIL import Image, ImageDraw, ImageFont

from print_agent.core.errors import RenderError
from print_agent.core.models import Config
from print_agent.session.messages import Job

logger = logging.getLogger(__name__)

BODY_FONT_SIZE = 24
HEADING_FONT_SIZE = 34


def format_money(amount: Any) -> str:
    """'10.5' -> '10.50'; anything unparseable -> '0.00'."""
    try:
        return f"{float(amount):.2f}"
    except (TypeError, ValueError):
        return "0.00"


def format_date(value: Any) -> str:
    """ISO-8601 timestamp -> 'dd/mm/YYYY HH:MM'; unparseable input is returned unchanged."""
    s = str(value or "")
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return s
    return dt.strftime("%d/%m/%Y %H:%M")


def _measure_text(font: ImageFont.FreeTypeFont | ImageFont.ImageFont, text: str) -> tuple[int, int]:
    """
    Text measurement across Pillow font types. Returns (width, height).
    """
    try:
        bbox = font.getbbox(text)
        return int(bbox[2] - bbox[0]), int(bbox[3] - bbox[1])
    except Exception:
        try:
            mask = font.getmask(text)  # type: ignore[attr-defined]
            return int(mask.size[0]), int(mask.size[1])
        except Exception:
            return 0, 0


def resolve_font(font_size: int, font_path: Optional[str] = None) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """
    Resolve a TTF font, preferring:
    1) the explicit font_path
    2) PRINTAGENT_FONT_PATH environment variable
    3) A list of common system font paths (DejaVu, FreeSans, Liberation, Noto)
    4) DejaVuSans shipped inside the Pillow installation
    Falls back to Pillow's built-in default font.
    """
    candidates: List[str] = []
    if font_path:
        candidates.append(font_path)
    env_path = os.environ.get("PRINTAGENT_FONT_PATH")
    if env_path and env_path not in candidates:
        candidates.append(env_path)

    common: Sequence[str] = (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/TTF/DejaVuSans.ttf",
        "/Library/Fonts/Arial.ttf",
        "C:\\Windows\\Fonts\\arial.ttf",
    )
    for pth in common:
        if pth not in candidates:
            candidates.append(pth)

    for pth in candidates:
        try:
            return ImageFont.truetype(pth, font_size)
        except Exception:
            continue

    try:
        from pathlib import Path

        import PIL  # type: ignore

        pil_dir = Path(PIL.__file__).resolve().parent
        for rel in ("fonts/DejaVuSans.ttf", "Tests/fonts/DejaVuSans.ttf"):
            candidate = pil_dir / rel
            if candidate.exists():
                return ImageFont.truetype(str(candidate), font_size)
    except Exception:
        pass

    logger.warning("No TrueType font found; using Pillow's default font")
    try:
        return ImageFont.load_default(size=font_size)
    except TypeError:
        # Pillow < 10.1 has no sized default font
        return ImageFont.load_default()


def wrap_text(text: str, font: ImageFont.FreeTypeFont | ImageFont.ImageFont, max_width: int) -> List[str]:
    """
    Greedy word-wrapping for a given pixel width. Words wider than the line
    are broken character by character.
    """
    if not text:
        return [""]

    lines: List[str] = []
    current = ""
    for word in text.split():
        test = current + (" " if current else "") + word
        if _measure_text(font, test)[0] <= max_width:
            current = test
            continue
        if current:
            lines.append(current)
            current = ""
        if _measure_text(font, word)[0] <= max_width:
            current = word
            continue
        for char in word:
            if current and _measure_text(font, current + char)[0] > max_width:
                lines.append(current)
                current = ""
            current += char

    if current:
        lines.append(current)
    return lines or [""]


class Renderer:
    """
    Turns a job into a bitmap: template text first, then Pillow layout.
    """

    def __init__(self, config: Config, font_path: Optional[str] = None):
        self.config = config
        self.font_path = font_path
        loaders = []
        if config.template_dir:
            loaders.append(FileSystemLoader(config.template_dir))
        loaders.append(PackageLoader("print_agent", "templates"))
        self.env = Environment(loader=ChoiceLoader(loaders), autoescape=False, undefined=ChainableUndefined)
        self.env.filters["format_money"] = format_money
        self.env.filters["format_date"] = format_date

    def render_text(self, job: Job) -> str:
        name = job.template or self.config.template
        try:
            tmpl = self.env.get_template(name)
            return tmpl.render(order=job.content, job=job)
        except TemplateError as e:
            raise RenderError(f"Template {name!r} failed: {e}") from e

    def render(self, job: Job, width: int) -> Image.Image:
        """
        Render `job` to an 'L' mode image `width` pixels wide (black=0, white=255).
        """
        text = self.render_text(job)
        return self.layout(text.splitlines(), width)

    def layout(self, lines: Sequence[str], width: int) -> Image.Image:
        margin = max(4, width // 48)
        spacing = 6
        max_text_width = max(1, width - 2 * margin)
        body = resolve_font(BODY_FONT_SIZE, self.font_path)
        heading = resolve_font(HEADING_FONT_SIZE, self.font_path)

        # (kind, text, font, height)
        blocks: List[tuple[str, str, Any, int]] = []
        for raw in lines:
            line = raw.rstrip()
            if line.strip() == "---":
                blocks.append(("rule", "", None, 2))
            elif line.startswith("## "):
                for part in wrap_text(line[3:].strip(), heading, max_text_width):
                    blocks.append(("text", part, heading, max(1, _measure_text(heading, "Ag")[1])))
            else:
                for part in wrap_text(line.strip(), body, max_text_width):
                    blocks.append(("text", part, body, max(1, _measure_text(body, "Ag")[1])))

        height = 2 * margin + sum(h + spacing for _, _, _, h in blocks)
        img = Image.new("L", (int(width), int(max(height, 2 * margin + 1))), 255)
        draw = ImageDraw.Draw(img)

        y = margin
        for kind, text, font, h in blocks:
            if kind == "rule":
                draw.rectangle([margin, y + spacing // 2, width - margin, y + spacing // 2 + h - 1], fill=0)
            elif text:
                draw.text((margin, y), text, font=font, fill=0)
            y += h + spacing

        return img


__all__ = ["Renderer", "format_date", "format_money", "resolve_font", "wrap_text"]
