import datetime
from io import BytesIO
from pathlib import Path
from typing import Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from . import config

# Constants
PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent


def _default_font_candidates() -> Tuple[str, ...]:
    return (
        '/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf',
        '/usr/share/fonts/TTF/DejaVuSans.ttf',
        'DejaVuSans.ttf'
    )


def load_font(size: int, candidates: Optional[Sequence[str]] = None) -> ImageFont.ImageFont:
    """Load the first available font from the candidate list or fall back to default."""
    font_candidates = candidates or _default_font_candidates()
    for candidate in font_candidates:
        candidate_path = Path(candidate)
        if candidate_path.is_absolute() and not candidate_path.exists():
            continue
        try:
            # Bare names are looked up on Pillow's font search path.
            return ImageFont.truetype(candidate_path.as_posix(), size)
        except OSError as exc:
            config.logger.debug("[font] failed to load %s: %s", candidate_path, exc)
    config.logger.warning("[font] falling back to default font")
    return ImageFont.load_default()


def get_no_image(width: Optional[int] = None, height: Optional[int] = None) -> BytesIO:
    """
    Create a blank image with a white background and overlay text indicating no image is available,
    along with the current date and time. The image is saved in BMP format and returned as
    a BytesIO object.
    """
    size = (width or config.PLACEHOLDER_WIDTH, height or config.PLACEHOLDER_HEIGHT)
    img = Image.new('1', size, color=1)  # '1' mode for 1-bit pixels, black and white

    d = ImageDraw.Draw(img)
    text_font = load_font(24)

    date_time = datetime.datetime.now().strftime("%d.%m.%Y %H:%M:%S")
    text = f"No image available\n{date_time}"
    text_bbox = d.textbbox((0, 0), text, font=text_font)
    text_width, text_height = text_bbox[2] - text_bbox[0], text_bbox[3] - text_bbox[1]
    text_position = ((img.width - text_width) // 2, (img.height - text_height) // 2)

    d.text(text_position, text, fill=0, font=text_font)  # fill=0 for black

    img_io = BytesIO()
    img.save(img_io, format="BMP")
    img_io.seek(0)
    return img_io


def to_iso_datetime(value) -> str:
    """Return an ISO-8601 representation for datetimes or POSIX timestamps."""
    if value is None:
        return ''
    if isinstance(value, (int, float)):
        if value <= 0:
            return ''
        value = datetime.datetime.fromtimestamp(value, datetime.timezone.utc)
    trimmed = value.replace(microsecond=0)
    return trimmed.isoformat()


def to_iso_timestamp(timestamp: Optional[float]) -> str:
    """Return an ISO-8601 string for a POSIX timestamp in seconds."""
    if timestamp is None or timestamp <= 0:
        return ''
    dt = datetime.datetime.fromtimestamp(timestamp, datetime.timezone.utc)
    return to_iso_datetime(dt)
