"""
Annotation renderer: draws region outlines and recognized text on a frame.

Drawing happens with Pillow on an RGB copy; the result comes back as BGR.
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .pipeline import FrameResult, RunStats


_OUTLINE_COLOR = (50, 205, 50)  # lime green
_LABEL_TEXT_COLOR = (255, 255, 255)
_BANNER_COLOR = (255, 0, 0)
_LINE_WIDTH = 2
_LABEL_FONT_SIZE = 18


def _load_font(size: int) -> ImageFont.ImageFont:
    """Try to load a scalable font; fall back to the default bitmap font."""
    candidates = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/TTF/DejaVuSans.ttf",
        "/System/Library/Fonts/Helvetica.ttc",
    ]
    for path in candidates:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    return ImageFont.load_default()


def _label_origin(
    draw: ImageDraw.ImageDraw,
    text: str,
    anchor: Tuple[int, int],
    font: ImageFont.ImageFont,
) -> Tuple[Tuple[int, int], Tuple[int, int, int, int]]:
    """Place a label with its baseline at the anchor, kept inside the image."""
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    text_w, text_h = right - left, bottom - top
    x = max(0, anchor[0])
    y = max(text_h, anchor[1])
    box = (x, y - text_h, x + text_w, y)
    origin = (x - left, y - text_h - top)
    return origin, box


def draw_results(
    image: np.ndarray,
    frame: FrameResult,
    stats: Optional[RunStats] = None,
) -> np.ndarray:
    """Draw a frame's regions and labels.

    Regions are outlined when they carry text, or always when recognition
    is disabled. Labels sit at the anchor corner.

    Args:
        image: Frame in BGR
        frame: Result of TextSpotter.process_frame for this image
        stats: If given, an fps / found banner is drawn

    Returns:
        Annotated BGR copy of the image
    """
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    canvas = Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
    draw = ImageDraw.Draw(canvas)
    font = _load_font(_LABEL_FONT_SIZE)

    for record in frame.regions:
        if frame.recognition_enabled and not record.text:
            continue

        polygon = [tuple(int(v) for v in p) for p in record.points]
        if len(polygon) > 1:
            draw.line(polygon + [polygon[0]], fill=_OUTLINE_COLOR, width=_LINE_WIDTH)

        if record.text:
            origin, box = _label_origin(draw, record.text, record.anchor_point, font)
            draw.rectangle(box, fill=_OUTLINE_COLOR)
            draw.text(origin, record.text, fill=_LABEL_TEXT_COLOR, font=font)

    if stats is not None:
        banner = f"fps: {int(stats.fps)} found: {frame.num_found}"
        draw.text((50, 30), banner, fill=_BANNER_COLOR, font=font)

    return cv2.cvtColor(np.array(canvas), cv2.COLOR_RGB2BGR)


def save_annotated(
    image: np.ndarray,
    frame: FrameResult,
    output_path: Union[str, Path],
    stats: Optional[RunStats] = None,
) -> Path:
    """Render and write an annotated frame, creating parent folders."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(output_path), draw_results(image, frame, stats)):
        raise OSError(f"Failed to write annotated frame: {output_path}")
    return output_path
