"""Layer compositing: mosaic, original image and subject mask."""
from typing import Optional, Tuple

from PIL import Image, ImageChops

PREVIEW_BRIGHTNESS = 0.3
OVERLAY_COLOR = (255, 0, 0)
OVERLAY_OPACITY = 0.4


def mask_coverage(mask: Image.Image, size: Tuple[int, int]) -> Image.Image:
    """
    Coverage channel of a mask image, resized to size.

    Masks with an alpha channel use it directly; others use luminance.

    Returns:
        Mode 'L' image where 255 means fully covered
    """
    if mask.mode in ('RGBA', 'LA') or (mask.mode == 'P' and 'transparency' in mask.info):
        coverage = mask.convert('RGBA').getchannel('A')
    else:
        coverage = mask.convert('L')
    if coverage.size != size:
        coverage = coverage.resize(size, Image.BILINEAR)
    return coverage


def _scale_alpha(image: Image.Image, factor: float) -> Image.Image:
    image = image.copy()
    alpha = image.getchannel('A').point(lambda a: int(round(a * factor)))
    image.putalpha(alpha)
    return image


def _fit(image: Image.Image, size: Tuple[int, int]) -> Image.Image:
    image = image.convert('RGBA')
    if image.size != size:
        image = image.resize(size, Image.BILINEAR)
    return image


def render_composite(
    original: Image.Image,
    mosaic: Optional[Image.Image] = None,
    mask: Optional[Image.Image] = None,
    show_mask_overlay: bool = False,
    size: Optional[Tuple[int, int]] = None
) -> Image.Image:
    """
    Combine the layers into a single image.

    Without a mosaic the original is shown dimmed over black as a
    placeholder for the future crystal area. With a mask, the original
    is kept where the mask is set, on top of the background. The
    optional overlay tints the masked area red.

    Args:
        original: Source image
        mosaic: Rendered crystal layer, or None before generation
        mask: Subject mask, or None
        show_mask_overlay: Tint the masked area
        size: Output size (defaults to the mosaic size, else the original size)

    Returns:
        RGBA image
    """
    if size is None:
        size = mosaic.size if mosaic is not None else original.size

    source = _fit(original, size)
    canvas = Image.new('RGBA', size, (0, 0, 0, 0))

    # 1. Background
    if mosaic is not None:
        canvas.alpha_composite(_fit(mosaic, size))
    else:
        canvas = Image.new('RGBA', size, (0, 0, 0, 255))
        canvas.alpha_composite(_scale_alpha(source, PREVIEW_BRIGHTNESS))

    if mask is None:
        return canvas

    coverage = mask_coverage(mask, size)

    # 2. Foreground: original where the mask is set
    foreground = source.copy()
    foreground.putalpha(ImageChops.multiply(source.getchannel('A'), coverage))
    canvas.alpha_composite(foreground)

    # 3. Red overlay
    if show_mask_overlay:
        overlay = Image.new('RGBA', size, OVERLAY_COLOR + (0,))
        overlay.putalpha(coverage.point(lambda a: int(round(a * OVERLAY_OPACITY))))
        canvas.alpha_composite(overlay)

    return canvas
