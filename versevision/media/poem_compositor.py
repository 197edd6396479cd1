import io
import math
import os
import re
from functools import lru_cache
from typing import Optional, Tuple, Union

from PIL import Image, ImageColor, ImageDraw, ImageFont, ImageOps

from versevision.specs.common.errors import CompositeFailedError
from versevision.specs.common.image import ImageReference
from versevision.specs.functions.compose_image_spec import (
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_FONT,
    DEFAULT_TEXT_COLOR,
    CompositeLayout,
)
from versevision.shared.logging_utils import error as log_error, info as log_info, warning as log_warning

MIN_FONT_SIZE = 24
FONT_WIDTH_DIVISOR = 30
LINE_HEIGHT_FACTOR = 1.2
BAND_PADDING = 20
BAND_BOTTOM_OFFSET = 40

ITALIC_FALLBACKS = ("DejaVuSerif-Italic.ttf", "DejaVuSans-Oblique.ttf")
# horizontal shift per pixel of height applied when no italic face exists
FALLBACK_SLANT = 0.2

RGBA = Tuple[int, int, int, int]

_CSS_RGB_RE = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([0-9]*\.?[0-9]+)(%?)\s*)?\)$",
    re.IGNORECASE,
)


def compute_font_size(width: float) -> float:
    return max(float(MIN_FONT_SIZE), width / FONT_WIDTH_DIVISOR)


def compute_layout(width: int, height: int, text: str) -> CompositeLayout:
    """Geometry of the text band for a ``width`` x ``height`` photo.

    The band spans the full width and its bottom edge sits 40px above the
    bottom of the image. Oversized bands are not clamped.
    """
    font_size = compute_font_size(width)
    line_height = font_size * LINE_HEIGHT_FACTOR
    lines = text.split("\n")
    text_height = len(lines) * line_height
    band_height = text_height + BAND_PADDING * 2
    band_top = height - band_height - BAND_BOTTOM_OFFSET
    return CompositeLayout(
        width=width,
        height=height,
        fontSize=font_size,
        lineHeight=line_height,
        lines=[ln.rstrip("\r") for ln in lines],
        textHeight=text_height,
        padding=BAND_PADDING,
        bandTop=band_top,
        bandHeight=band_height,
    )


def parse_color(value: str) -> RGBA:
    """Resolve a colour string to RGBA.

    Accepts anything Pillow understands plus CSS ``rgba()`` with a 0..1
    (or percentage) alpha.
    """
    m = _CSS_RGB_RE.match(value.strip())
    if m:
        r, g, b = (min(int(c), 255) for c in m.group(1, 2, 3))
        alpha = 255
        if m.group(4) is not None:
            a = float(m.group(4))
            if m.group(5):
                a /= 100.0
            alpha = round(max(0.0, min(a, 1.0)) * 255)
        return r, g, b, alpha
    return ImageColor.getcolor(value, "RGBA")  # type: ignore[return-value]


@lru_cache(maxsize=32)
def _pick_font(family: str, size: float, font_dir: Optional[str]) -> Tuple[ImageFont.ImageFont, bool]:
    """Return ``(font, is_italic)``.

    Italic faces of ``family`` are tried first, then ITALIC_FALLBACKS. Pillow's
    upright default font is the last resort and is reported as not italic.
    """
    names = []
    if family.lower().endswith((".ttf", ".otf")):
        names.append(family)
    stem = family.replace(" ", "")
    names += [
        f"{stem}-Italic.ttf",
        f"{stem}Italic.ttf",
        f"{stem}-Italic.otf",
        f"{stem.lower()}-italic.ttf",
    ]
    candidates = [os.path.join(font_dir, n) for n in names] if font_dir else []
    candidates += names + list(ITALIC_FALLBACKS)
    for name in candidates:
        try:
            return ImageFont.truetype(name, size=size), True
        except OSError:
            continue
    log_warning(None, "compose:font:fallback", family=family, size=size)
    return ImageFont.load_default(size=size), False


def _decode(image: Union[ImageReference, bytes]) -> Image.Image:
    data = image.data if isinstance(image, ImageReference) else image
    src = Image.open(io.BytesIO(data))
    src.load()
    return ImageOps.exif_transpose(src).convert("RGBA")


def _draw_lines(layer: Image.Image, layout: CompositeLayout, font: ImageFont.ImageFont, fill: RGBA) -> None:
    draw = ImageDraw.Draw(layer)
    cx = layout.width / 2
    freetype = isinstance(font, ImageFont.FreeTypeFont)
    for index, line in enumerate(layout.lines):
        if not line:
            continue
        cy = layout.line_center_y(index)
        if freetype:
            draw.text((cx, cy), line, font=font, fill=fill, anchor="mm")
        else:
            left, top, right, bottom = draw.textbbox((0, 0), line, font=font)
            draw.text((cx - (right - left) / 2, cy - (bottom - top) / 2), line, font=font, fill=fill)


def _slant_lines(layer: Image.Image, layout: CompositeLayout) -> None:
    """Shear each text row in place so an upright face reads as italic."""
    half = layout.lineHeight / 2
    for index, line in enumerate(layout.lines):
        if not line:
            continue
        cy = layout.line_center_y(index)
        top = max(0, math.floor(cy - half))
        bottom = min(layer.height, math.ceil(cy + half))
        if bottom <= top:
            continue
        row = layer.crop((0, top, layer.width, bottom))
        mid = (bottom - top) / 2
        sheared = row.transform(
            row.size,
            Image.Transform.AFFINE,
            (1, FALLBACK_SLANT, -FALLBACK_SLANT * mid, 0, 1, 0),
            resample=Image.Resampling.BICUBIC,
        )
        layer.paste(sheared, (0, top))


def render_composite(
    image: Union[ImageReference, bytes],
    text: str,
    font: str = DEFAULT_FONT,
    text_color: str = DEFAULT_TEXT_COLOR,
    background_color: str = DEFAULT_BACKGROUND_COLOR,
) -> Tuple[Image.Image, CompositeLayout]:
    """Composite ``text`` over ``image`` and return the flattened canvas.

    The canvas always has the source dimensions. The band is composited over
    the photo first and the text over the band. Any failure raises
    CompositeFailedError.
    """
    try:
        src = _decode(image)
        width, height = src.size
        layout = compute_layout(width, height, text)
        text_fill = parse_color(text_color)
        band_fill = parse_color(background_color)

        canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        canvas.alpha_composite(src, (0, 0))

        band = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        top = max(0, round(layout.bandTop))
        bottom = min(height, round(layout.bandBottom))
        if bottom > top:
            ImageDraw.Draw(band).rectangle([0, top, width - 1, bottom - 1], fill=band_fill)
        canvas = Image.alpha_composite(canvas, band)

        text_layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        face, italic = _pick_font(font, layout.fontSize, os.getenv("VERSEVISION_FONT_DIR"))
        _draw_lines(text_layer, layout, face, text_fill)
        if not italic:
            _slant_lines(text_layer, layout)
        canvas = Image.alpha_composite(canvas, text_layer)
    except Exception as exc:
        log_error(None, "compose:failed", exc_info=True, error=str(exc))
        raise CompositeFailedError("Failed to create image.", details={"error": str(exc)}) from exc
    return canvas, layout


def compose_poem_image(
    image: Union[ImageReference, bytes],
    text: str,
    font: str = DEFAULT_FONT,
    text_color: str = DEFAULT_TEXT_COLOR,
    background_color: str = DEFAULT_BACKGROUND_COLOR,
) -> bytes:
    """Return PNG bytes of the poem composited onto the photo."""
    canvas, layout = render_composite(image, text, font, text_color, background_color)
    buf = io.BytesIO()
    try:
        canvas.save(buf, format="PNG")
    except Exception as exc:
        raise CompositeFailedError("Failed to encode image.", details={"error": str(exc)}) from exc
    log_info(
        None,
        "compose:done",
        width=layout.width,
        height=layout.height,
        lines=len(layout.lines),
        bytes=buf.tell(),
    )
    return buf.getvalue()
