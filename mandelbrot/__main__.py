"""
Headless render benchmark: python -m mandelbrot

Renders one view several times and reports per-render and average times
for the chosen execution policy. Image saving is left to the caller of
the library.
"""

import logging
import sys
from argparse import ArgumentParser

import numpy as np

from .compute import ColorMode, parse_color_mode, warmup_jit
from .config import load_settings
from .palettes import generate_palette, list_palette_names
from .scheduler import TileScheduler, make_request
from .viewport import Viewport


def build_parser(settings):
    parser = ArgumentParser(prog='python -m mandelbrot',
                            description='Render the Mandelbrot set and report render times.')
    parser.add_argument('--width', type=int, default=800, help='output width in pixels')
    parser.add_argument('--height', type=int, default=800, help='output height in pixels')
    parser.add_argument('--max-iterations', type=int, dest='max_iterations',
                        default=settings.max_iterations, metavar='MAX_ITERATIONS')
    parser.add_argument('--mode', default=settings.color_mode.name.lower(),
                        choices=[m.name.lower() for m in ColorMode],
                        help='coloring mode')
    parser.add_argument('--palette', default=settings.palette,
                        help='one of: ' + ', '.join(list_palette_names()))
    parser.add_argument('--viewport', type=float, nargs=4, default=list(settings.viewport.as_tuple()),
                        metavar=('X_MIN', 'X_MAX', 'Y_MIN', 'Y_MAX'))
    parser.add_argument('--scale', type=int, default=1, help='render at 1/SCALE resolution')
    parser.add_argument('--single-threaded', action='store_true', dest='single_threaded',
                        help='render on one thread instead of row bands')
    parser.add_argument('--repeat', type=int, default=3, help='number of timed renders')
    parser.add_argument('--verbose', '-v', action='store_true')
    return parser


def main(argv=None):
    settings = load_settings()
    args = build_parser(settings).parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(message)s')

    palette = generate_palette(args.palette, settings.base_color)
    request = make_request(Viewport(*args.viewport), args.width, args.height,
                           args.max_iterations, parse_color_mode(args.mode), palette, args.scale)
    parallel = not args.single_threaded

    warmup_jit(palette)
    with TileScheduler() as scheduler:
        for _ in range(max(1, args.repeat)):
            pixels = scheduler.render_request(request, parallel=parallel)
        stats = scheduler.stats['parallel' if parallel else 'sequential']

    black = np.all(pixels == 0, axis=-1).mean()
    print(f"{pixels.shape[1]}x{pixels.shape[0]} {request.color_mode.label}, "
          f"{request.max_iterations} iterations, {black:.1%} black pixels")
    if stats.count:
        print(f"Average over {stats.count} renders: {stats.mean_ms:.2f} ms")
    return 0


if __name__ == '__main__':
    sys.exit(main())
