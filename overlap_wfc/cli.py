import argparse
import logging
import os
from time import time

from .analysis import analyze_output_distribution, catalog_frame, count_violations
from .engine import Wave
from .imaging import load_pattern, result_array, save_result
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser():
    parse = argparse.ArgumentParser(
        prog="overlap-wfc",
        description="Generate an image that locally resembles a seed image with Wave Function Collapse.")
    parse.add_argument("seed", type=str, help="Path to the seed image.")
    parse.add_argument("win_width", type=int, help="Width, in pixels, of the local similarity area (tile size).")
    parse.add_argument("win_height", type=int, help="Height, in pixels, of the local similarity area (tile size).")
    parse.add_argument("dst", type=str, help="Path to save the result, the format follows the extension.")
    parse.add_argument("width", type=int, help="Result width in pixels.")
    parse.add_argument("height", type=int, help="Result height in pixels.")
    parse.add_argument("rnd", type=int, nargs='?', default=0,
                       help="Random seed for reproducibility, 0 picks one at random.")
    parse.add_argument('--step', action='store_true', help="Collapse one step at a time and print the progress.")
    parse.add_argument('--trace', action='store_true',
                       help="Print the progress for every processed cell (slow).")
    parse.add_argument('--grayscale', action='store_true', help="Convert the seed image to grayscale.")
    parse.add_argument('--save-tileset', type=str, default=None, help="Save the extracted tileset to an .npz file.")
    parse.add_argument('--catalog-csv', type=str, default=None, help="Write the tile catalog to a CSV file.")
    parse.add_argument('--report', action='store_true',
                       help="Print the tile distribution KL-divergence and rule violations of the result.")
    parse.add_argument('--show', action='store_true', help="Plot the seed and the result with matplotlib.")
    parse.add_argument('--log-level', type=str, default='WARNING',
                       choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help="Console log level.")
    parse.add_argument('--log-file', type=str, default=None, help="Also write a DEBUG log to this file.")
    return parse


def main(argv=None):
    parse = build_parser()
    args = parse.parse_args(argv)
    if min(args.win_width, args.win_height, args.width, args.height) <= 0:
        parse.error("tile and result dimensions must be positive")
    if args.rnd < 0:
        parse.error("random seed must be non-negative")
    setup_logging(getattr(logging, args.log_level), args.log_file)

    try:
        sample, seed_w, seed_h = load_pattern(args.seed, grayscale=args.grayscale)
    except OSError as exc:
        print("Couldn't read the seed image {}: {}".format(args.seed, exc))
        return 1
    if args.win_width > seed_w or args.win_height > seed_h:
        parse.error("tile {}x{} does not fit into the {}x{} seed image".format(
            args.win_width, args.win_height, seed_w, seed_h))

    before = time()
    wave = Wave(args.width, args.height)
    print("Generating tiles...")
    wave.init_from_pattern(sample, seed_w, seed_h, args.win_width, args.win_height, args.rnd)
    print("{} tiles were generated. It took {:.2f} s".format(len(wave.tiles), time() - before))
    print("Random seed: {}".format(wave.tileset.rnd_seed))

    try:
        if args.save_tileset:
            wave.tileset.save(args.save_tileset)
            print("Saved tileset to", args.save_tileset)
        if args.catalog_csv:
            catalog_frame(wave.tileset).to_csv(args.catalog_csv, index=False)
            print("Saved tile catalog to", args.catalog_csv)
    except OSError as exc:
        print("Couldn't save the tileset: {}".format(exc))
        return 1

    print("Generating result...")
    callback = None
    if args.trace:
        def callback(wave, x, y):
            # the progress lags behind: it is refreshed once per step, the callback runs per cell
            print("[Callback] ({}, {}) Current progress: {:.1f}%     ".format(x, y, wave.progress), end='\r')

    before = time()
    if args.step:
        while not wave.collapse(True, callback):
            print("Generating: {:.1f}%     ".format(wave.progress), end='\r')
    else:
        wave.collapse(False, callback)
    print()
    print("Generation took {:.2f} s".format(time() - before))
    logger.info("Collapsed a {}x{} wave from {} tiles".format(args.width, args.height, len(wave.tiles)))

    try:
        save_result(wave, args.dst)
    except (OSError, ValueError) as exc:
        print("Oops. Couldn't save the result to {}: {}".format(args.dst, exc))
        return 1

    if args.report:
        grid = wave.tile_ids()
        analysis = analyze_output_distribution(wave.tileset, grid)
        print("Tile KL-divergence (sample||output): {:.6f}".format(analysis["kl_divergence"]))
        print("Tiles used: {} / {}".format(int((analysis["output_counts"] > 0).sum()), len(wave.tiles)))
        print("Adjacency violations: {}".format(count_violations(wave.tileset, grid)))
        if analysis["missing_in_output"].size > 0:
            print("Tile ids missing in output but present in sample:", analysis["missing_in_output"].tolist())

    if args.show:
        import matplotlib.pyplot as plt
        from .plotting import plot_distribution_bars, plot_sample_and_result
        if args.report:
            plot_distribution_bars(analysis["sample_distribution"], analysis["output_distribution"])
        plot_sample_and_result(sample, result_array(wave))
        plt.show()

    print("Done. Saved", os.path.abspath(args.dst))
    return 0
