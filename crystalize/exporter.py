"""Batch export of mosaic variants into a ZIP archive."""
import io
import logging
import math
import zipfile
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple, Union

from PIL import Image, ImageDraw, ImageFilter, ImageFont

from crystalize.types import PixelBuffer, RenderOptions, SeedSet, InvalidParametersError
from crystalize.job import CrystallizationJob
from crystalize.compositor import render_composite
from crystalize.raster_ingest import pixels_to_image

logger = logging.getLogger(__name__)

# variant code -> (file name, draw borders, apply mask)
VARIANTS: Dict[str, Tuple[str, bool, bool]] = {
    'bm': ('Border_Masked.png', True, True),
    'bf': ('Border_Full.png', True, False),
    'nm': ('NoBorder_Masked.png', False, True),
    'nf': ('NoBorder_Full.png', False, False),
}


def archive_name(scale: float) -> str:
    """Default file name for a batch archive."""
    return f"Crystalize_Batch_{scale:g}x.zip"


def apply_watermark(image: Image.Image, text: str) -> Image.Image:
    """
    Draw text in the bottom-right corner with a soft drop shadow.

    Font size and padding scale with the image width.
    """
    width, height = image.size
    font_size = max(24, int(math.floor(width * 0.03)))
    padding = int(math.floor(width * 0.02))
    anchor_xy = (width - padding, height - padding)

    font = ImageFont.load_default(size=font_size)

    shadow = Image.new('RGBA', image.size, (0, 0, 0, 0))
    ImageDraw.Draw(shadow).text(
        (anchor_xy[0] + 2, anchor_xy[1] + 2), text,
        font=font, fill=(0, 0, 0, 153), anchor='rd',
    )
    shadow = shadow.filter(ImageFilter.GaussianBlur(2))

    label = Image.new('RGBA', image.size, (0, 0, 0, 0))
    ImageDraw.Draw(label).text(anchor_xy, text, font=font, fill=(255, 255, 255, 204), anchor='rd')

    result = image.convert('RGBA')
    result.alpha_composite(shadow)
    result.alpha_composite(label)
    return result


def render_variants(
    pixels: PixelBuffer,
    seeds: SeedSet,
    mask: Optional[Image.Image] = None,
    variants: Iterable[str] = ('bm', 'bf', 'nm', 'nf'),
    scale: float = 1.0,
    watermark: str = ""
) -> Dict[str, Image.Image]:
    """
    Render the requested variants from one shared seed set.

    Seeds are replayed verbatim, so all variants share identical cell
    geometry. Masked variants without a mask fall back to the plain
    mosaic.

    Args:
        pixels: RGBA pixel buffer (H, W, 4)
        seeds: Seed set to replay
        mask: Subject mask, or None
        variants: Variant codes from VARIANTS
        scale: Output scale
        watermark: Optional watermark text

    Returns:
        Mapping of file name to image, in request order
    """
    variants = list(variants)
    unknown = [v for v in variants if v not in VARIANTS]
    if unknown:
        raise InvalidParametersError(f"Unknown export variants: {unknown}")

    original = pixels_to_image(pixels)
    layers: Dict[bool, Image.Image] = {}
    outputs: Dict[str, Image.Image] = {}

    for code in variants:
        filename, with_border, use_mask = VARIANTS[code]

        if with_border not in layers:
            options = RenderOptions(
                existing_seeds=seeds,
                draw_borders=with_border,
                output_scale=scale,
                relaxation_steps=0,
                detail_bias=0.0,
            )
            layers[with_border] = CrystallizationJob(options).run(pixels).layer

        layer = layers[with_border]
        image = render_composite(
            original,
            mosaic=layer,
            mask=mask if use_mask else None,
            size=layer.size,
        )
        if watermark:
            image = apply_watermark(image, watermark)
        outputs[filename] = image

    return outputs


def export_batch(
    pixels: PixelBuffer,
    seeds: SeedSet,
    mask: Optional[Image.Image] = None,
    variants: Iterable[str] = ('bm', 'bf', 'nm', 'nf'),
    scale: float = 1.0,
    watermark: str = "",
    output_path: Optional[Union[str, Path]] = None
) -> bytes:
    """
    Render variants and bundle them as PNG files in a ZIP archive.

    Args:
        pixels: RGBA pixel buffer (H, W, 4)
        seeds: Seed set shared by all variants
        mask: Subject mask, or None
        variants: Variant codes ('bm', 'bf', 'nm', 'nf')
        scale: Output scale
        watermark: Optional watermark text
        output_path: Optional path to write the archive to

    Returns:
        ZIP archive bytes
    """
    images = render_variants(pixels, seeds, mask, variants, scale, watermark)

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
        for filename, image in images.items():
            png = io.BytesIO()
            image.save(png, format='PNG')
            archive.writestr(filename, png.getvalue())

    data = buffer.getvalue()
    if output_path:
        Path(output_path).write_bytes(data)
        logger.info(f"Exported {len(images)} variants to {output_path}")

    return data
