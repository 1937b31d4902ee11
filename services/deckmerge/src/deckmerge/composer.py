"""Grid compositing with Pillow."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from common.config import OutputFormat, Settings
from common.logging import get_logger

from .errors import CompositionError
from .models.merge_request import GridShape

LOGGER = get_logger(__name__)

TRANSPARENT = (0, 0, 0, 0)
OPAQUE_BLACK = (0, 0, 0)
PNG_COMPRESS_LEVEL = 9
JPEG_QUALITY = 90


@dataclass(frozen=True, slots=True)
class CompositeResult:
    buffer: bytes
    width: int
    height: int
    tile_width: int
    tile_height: int
    format: OutputFormat


def decode_image(data: bytes) -> Image.Image:
    """Open ``data`` and force a full decode so broken payloads fail here."""

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise CompositionError(f"Unable to decode image data: {exc}") from exc
    return image


def encode_image(image: Image.Image, fmt: OutputFormat) -> bytes:
    buffer = io.BytesIO()
    if fmt == "jpeg":
        image.convert("RGB").save(buffer, format="JPEG", quality=JPEG_QUALITY, subsampling=0)
    else:
        image.save(buffer, format="PNG", optimize=True, compress_level=PNG_COMPRESS_LEVEL)
    return buffer.getvalue()


def fit_tile(image: Image.Image, size: Tuple[int, int], fmt: OutputFormat) -> Image.Image:
    """Contain-fit ``image`` into ``size``, centred, padding with the background.

    PNG tiles keep an alpha channel with a transparent background. JPEG tiles
    are flattened onto opaque black.
    """

    rgba = ImageOps.exif_transpose(image).convert("RGBA")
    padded = ImageOps.pad(rgba, size, method=Image.Resampling.LANCZOS, color=TRANSPARENT)
    if fmt != "jpeg":
        return padded
    flattened = Image.new("RGB", size, OPAQUE_BLACK)
    flattened.paste(padded, mask=padded.getchannel("A"))
    return flattened


class GridComposer:
    """Render up to ``rows * columns`` images into a single sheet.

    Tile size and output format are fixed by configuration and applied to every
    slot of every sheet.
    """

    def __init__(self, settings: Settings) -> None:
        self._tile_size = (settings.tile_width, settings.tile_height)
        self._format: OutputFormat = settings.merge_output_format

    def blank_tile(self) -> Image.Image:
        if self._format == "jpeg":
            return Image.new("RGB", self._tile_size, OPAQUE_BLACK)
        return Image.new("RGBA", self._tile_size, TRANSPARENT)

    def prepare_tile(self, data: bytes) -> Image.Image:
        return fit_tile(decode_image(data), self._tile_size, self._format)

    def normalize_image(self, data: bytes, fmt: OutputFormat) -> bytes:
        """Fit ``data`` to the tile size and re-encode it as ``fmt``."""

        return encode_image(fit_tile(decode_image(data), self._tile_size, fmt), fmt)

    def compose_grid(self, images: Sequence[Optional[bytes]], grid: GridShape) -> CompositeResult:
        if len(images) > grid.slots:
            raise CompositionError(
                f"Received {len(images)} images for a grid of {grid.slots} slots"
            )
        if not any(images):
            raise CompositionError("No images available to compose")

        tile_width, tile_height = self._tile_size
        width = tile_width * grid.columns
        height = tile_height * grid.rows
        mode = "RGB" if self._format == "jpeg" else "RGBA"
        background = OPAQUE_BLACK if self._format == "jpeg" else TRANSPARENT

        blank = self.blank_tile()
        canvas = Image.new(mode, (width, height), background)
        filled = 0
        for slot in range(grid.slots):
            data = images[slot] if slot < len(images) else None
            tile = self.prepare_tile(data) if data else blank
            origin = ((slot % grid.columns) * tile_width, (slot // grid.columns) * tile_height)
            canvas.paste(tile, origin)
            if data:
                filled += 1

        buffer = encode_image(canvas, self._format)
        LOGGER.debug(
            "compose.done",
            width=width,
            height=height,
            filled=filled,
            format=self._format,
            bytes=len(buffer),
        )
        return CompositeResult(
            buffer=buffer,
            width=width,
            height=height,
            tile_width=tile_width,
            tile_height=tile_height,
            format=self._format,
        )


__all__ = [
    "CompositeResult",
    "GridComposer",
    "decode_image",
    "encode_image",
    "fit_tile",
]
