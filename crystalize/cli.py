"""Command line interface for crystalize."""
import argparse
import logging
import sys
from pathlib import Path

from PIL import Image

from crystalize.types import RenderOptions, CrystallizeError
from crystalize.raster_ingest import ingest, pixels_to_image
from crystalize.job import CrystallizationJob
from crystalize.compositor import render_composite
from crystalize.exporter import VARIANTS, archive_name, export_batch
from crystalize.seed_store import load_seeds, save_seeds


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog='crystalize',
        description='Turn a photograph into a Voronoi crystal mosaic',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  crystalize photo.jpg -o mosaic.png --points 3000 --borders
  crystalize photo.jpg --detail-bias 0.8 --seeds-out layout.npy
  crystalize photo.jpg --seeds-in layout.npy --scale 2 --mask subject.png
  crystalize photo.jpg --seeds-in layout.npy --export-zip --variants bm,nf
        """,
    )

    parser.add_argument('input', type=str, help='Input image path')

    parser.add_argument(
        '-o', '--output',
        type=str,
        help='Output PNG path (default: input_crystal.png)'
    )

    parser.add_argument(
        '--points',
        type=int,
        default=5000,
        help='Number of cells (default: 5000, ignored with --seeds-in)'
    )

    parser.add_argument(
        '--detail-bias',
        type=float,
        default=0.0,
        help='0 = uniform seeds, 1 = seeds cling to edges (default: 0)'
    )

    parser.add_argument(
        '--relax',
        type=int,
        default=0,
        help='Lloyd relaxation steps (default: 0, ignored with --seeds-in)'
    )

    parser.add_argument('--borders', action='store_true', help='Draw cell borders')

    parser.add_argument(
        '--scale',
        type=float,
        default=1.0,
        help='Output scale factor (default: 1.0)'
    )

    parser.add_argument('--seed', type=int, default=None, help='Random seed for reproducible layouts')

    parser.add_argument('--seeds-in', type=str, default=None, help='Reuse a saved seed layout (.npy)')

    parser.add_argument('--seeds-out', type=str, default=None, help='Save the seed layout used (.npy)')

    parser.add_argument('--mask', type=str, default=None, help='Subject mask image to keep unstylized')

    parser.add_argument('--overlay', action='store_true', help='Tint the masked area red')

    parser.add_argument(
        '--export-zip',
        nargs='?',
        const='',
        default=None,
        help='Write a ZIP of variants instead of a single PNG (optional path)'
    )

    parser.add_argument(
        '--variants',
        type=str,
        default='bm,bf,nm,nf',
        help='Comma-separated export variants: bm, bf, nm, nf (default: all)'
    )

    parser.add_argument('--watermark', type=str, default='', help='Watermark text for exports')

    parser.add_argument('-v', '--verbose', action='store_true', help='Log pipeline progress')

    return parser


def load_mask(path) -> Image.Image:
    """Read a mask image fully and release the file."""
    with Image.open(path) as img:
        img.load()
        return img.copy()


def main(args=None):
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.INFO if parsed_args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s'
    )

    input_path = Path(parsed_args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    variants = [v.strip() for v in parsed_args.variants.split(',') if v.strip()]
    unknown = [v for v in variants if v not in VARIANTS]
    if unknown:
        print(f"Error: Unknown variants: {', '.join(unknown)}", file=sys.stderr)
        return 1

    try:
        pixels = ingest(input_path)
        mask = load_mask(parsed_args.mask) if parsed_args.mask else None
        existing = load_seeds(parsed_args.seeds_in) if parsed_args.seeds_in else None

        options = RenderOptions(
            point_count=parsed_args.points,
            detail_bias=parsed_args.detail_bias,
            relaxation_steps=parsed_args.relax,
            random_seed=parsed_args.seed,
            existing_seeds=existing,
            draw_borders=parsed_args.borders,
            output_scale=parsed_args.scale,
        )

        if parsed_args.export_zip is not None:
            # Every variant replays one shared layout
            seeds = existing if existing is not None else CrystallizationJob(options).layout(pixels)

            zip_path = Path(parsed_args.export_zip or input_path.parent / archive_name(parsed_args.scale))
            export_batch(
                pixels, seeds,
                mask=mask,
                variants=variants,
                scale=parsed_args.scale,
                watermark=parsed_args.watermark,
                output_path=zip_path,
            )
            print(f"Exported {len(variants)} variants to {zip_path}")
        else:
            result = CrystallizationJob(options).run(pixels)
            seeds = result.seeds

            image = result.layer
            if mask is not None or parsed_args.overlay:
                image = render_composite(
                    pixels_to_image(pixels),
                    mosaic=result.layer,
                    mask=mask,
                    show_mask_overlay=parsed_args.overlay,
                )

            output_path = Path(parsed_args.output) if parsed_args.output else \
                input_path.with_name(f"{input_path.stem}_crystal.png")
            image.save(output_path)
            print(f"Saved {result.cell_count}-cell mosaic to {output_path} ({image.width}x{image.height})")

        if parsed_args.seeds_out:
            saved = save_seeds(parsed_args.seeds_out, seeds)
            print(f"Saved seed layout to {saved}")

        return 0

    except (CrystallizeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
