"""
Watermark compositor for public downloads.

Overlay = the watermark phrase tiled diagonally (-30° on screen) at 15%
opacity + one copyright caption in the bottom-right corner at 40% opacity.
The result is always re-encoded as JPEG.
"""
import asyncio
import io
import logging
import time
from functools import lru_cache
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from app.config import get_settings
from app.exceptions import ValidationError
from app.utils.prometheus_metrics import watermark_duration_seconds

logger = logging.getLogger("app.watermark")

TILE_OPACITY = 0.15
CAPTION_OPACITY = 0.40
TILE_ANGLE_DEG = 30
MIN_FONT_SIZE = 16
FONT_SIZE_RATIO = 0.04

_FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/System/Library/Fonts/Supplemental/Arial.ttf",
    "C:/Windows/Fonts/arial.ttf",
    "DejaVuSans.ttf",
    "arial.ttf",
)


def font_size_for(width: int, height: int) -> int:
    return int(max(MIN_FONT_SIZE, min(width, height) * FONT_SIZE_RATIO))


@lru_cache(maxsize=32)
def _load_font(size: int, font_path: str = "") -> ImageFont.ImageFont:
    for candidate in (font_path, *_FONT_CANDIDATES):
        if not candidate:
            continue
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    # Pillow 10.1+ 기본 폰트는 크기 지정 가능
    logger.warning(
        "No TrueType font found, using Pillow default font",
        extra={"event": "watermark"},
    )
    return ImageFont.load_default(size=size)


def _alpha(opacity: float) -> int:
    return int(round(255 * opacity))


def _text_size(draw: ImageDraw.ImageDraw, text: str, font) -> Tuple[int, int]:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    return right - left, bottom - top


def _tiled_layer(size: Tuple[int, int], text: str, font, font_size: int) -> Image.Image:
    """Phrase repeated on a grid, rotated, center-cropped back to `size`."""
    width, height = size
    # 회전 후에도 모서리가 비지 않도록 대각선 길이의 정사각형 캔버스에 그림
    side = int((width ** 2 + height ** 2) ** 0.5) + font_size * 4
    canvas = Image.new("RGBA", (side, side), (0, 0, 0, 0))
    draw = ImageDraw.Draw(canvas)

    text_w, text_h = _text_size(draw, text, font)
    step_x = text_w + font_size * 4
    step_y = text_h + font_size * 4
    fill = (255, 255, 255, _alpha(TILE_OPACITY))

    for row, y in enumerate(range(0, side, step_y)):
        # 행마다 반 칸씩 어긋나게 배치
        offset = (step_x // 2) if row % 2 else 0
        for x in range(-offset, side, step_x):
            draw.text((x, y), text, font=font, fill=fill)

    # PIL 의 양수 각도는 반시계 방향 (화면 기준 -30°)
    rotated = canvas.rotate(TILE_ANGLE_DEG, resample=Image.Resampling.BICUBIC, expand=False)
    left = (side - width) // 2
    top = (side - height) // 2
    return rotated.crop((left, top, left + width, top + height))


def _draw_caption(layer: Image.Image, caption: str, font, font_size: int) -> None:
    draw = ImageDraw.Draw(layer)
    left, top, right, bottom = draw.textbbox((0, 0), caption, font=font)
    x = layer.width - font_size - (right - left) - left
    y = layer.height - font_size - (bottom - top) - top
    draw.text((x, y), caption, font=font, fill=(255, 255, 255, _alpha(CAPTION_OPACITY)))


def probe_dimensions(image_bytes: bytes) -> Tuple[Optional[int], Optional[int]]:
    """(width, height) or (None, None) when the bytes are not a readable image."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            return image.size
    except (UnidentifiedImageError, OSError, ValueError):
        return None, None


def watermark_image(
    image_bytes: bytes,
    text: Optional[str] = None,
    caption: Optional[str] = None,
    quality: Optional[int] = None,
    font_path: Optional[str] = None,
) -> bytes:
    """
    Composite the watermark onto `image_bytes` and return JPEG bytes
    with the same pixel dimensions as the source.

    Raises:
        ValidationError: the bytes are not a decodable image
    """
    settings = get_settings()
    text = text or settings.watermark_text
    caption = caption or settings.watermark_caption
    quality = quality or settings.watermark_jpeg_quality
    font_path = settings.watermark_font_path if font_path is None else font_path

    try:
        source = Image.open(io.BytesIO(image_bytes))
        source.load()
    except (UnidentifiedImageError, OSError, ValueError):
        raise ValidationError("Stored file is not a readable image")

    base = source.convert("RGBA")
    width, height = base.size
    font_size = font_size_for(width, height)
    font = _load_font(font_size, font_path or "")

    overlay = _tiled_layer((width, height), text, font, font_size)
    _draw_caption(overlay, caption, font, font_size)

    composed = Image.alpha_composite(base, overlay).convert("RGB")
    out = io.BytesIO()
    composed.save(out, format="JPEG", quality=quality)
    return out.getvalue()


async def watermark_image_async(image_bytes: bytes) -> bytes:
    """Run the compositor in the default thread pool and time it."""
    loop = asyncio.get_running_loop()
    start = time.perf_counter()
    try:
        return await loop.run_in_executor(None, watermark_image, image_bytes)
    finally:
        watermark_duration_seconds.observe(time.perf_counter() - start)
