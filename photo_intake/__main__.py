"""Command line entry point: process the input backlog, then watch for new files."""
from __future__ import annotations

import argparse
import logging
import sys

from photo_intake.config import load_config
from photo_intake.geocoder import ReverseGeocoder
from photo_intake.services.dispatcher import Dispatcher
from photo_intake.services.processor import PhotoProcessor
from photo_intake.services.watcher import InputWatcher


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photo-intake",
        description="Sort photos (and archives of photos) dropped into a folder by date and location.",
    )
    parser.add_argument("-i", "--input", dest="input_dir",
                        help="watched source folder (default: ./input)")
    parser.add_argument("-o", "--output", dest="output_dir",
                        help="destination folder (default: ./output)")
    parser.add_argument("-c", "--config", help="optional JSON settings file")
    parser.add_argument("-w", "--workers", type=int, help="concurrent files (default: 4)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def _wait_for_quit(stream=None) -> None:
    print("Type 'q' and press Enter to quit")
    for line in stream or sys.stdin:
        if line.strip().lower() == "q":
            return


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(threadName)s] %(message)s",
    )

    try:
        config = load_config(args.config, input_dir=args.input_dir,
                             output_dir=args.output_dir, workers=args.workers)
    except (FileNotFoundError, ValueError) as exc:
        logging.error("%s", exc)
        return 2

    config.input_dir.mkdir(parents=True, exist_ok=True)
    config.output_dir.mkdir(parents=True, exist_ok=True)
    logging.info("input: %s", config.input_dir.resolve())
    logging.info("output: %s", config.output_dir.resolve())

    processor = PhotoProcessor(config, ReverseGeocoder(config))
    dispatcher = Dispatcher(config, processor)

    count = dispatcher.dispatch_tree(config.input_dir)
    logging.info("Backlog done: %d file(s)", count)

    with InputWatcher(dispatcher, config.input_dir, config.workers):
        try:
            _wait_for_quit()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
