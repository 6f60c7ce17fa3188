import os
import sys
from dataclasses import asdict
from typing import List, Optional

# pyexiv2 must be loaded before Qt (pulled in by app_settings)
from irismeta.pyexiv2_init import ensure_pyexiv2_initialized  # noqa: E402

ensure_pyexiv2_initialized()

import logging  # noqa: E402
import argparse  # noqa: E402

from irismeta.app_settings import WritePolicy, get_write_policy  # noqa: E402
from irismeta.errors import MetadataError  # noqa: E402
from irismeta.exif_reader import BinaryTagReader  # noqa: E402
from irismeta.metadata_reader import MetadataReader  # noqa: E402


def setup_logging(debug: bool = False) -> None:
    """Configure the root logger for command line use."""
    root_logger = logging.getLogger()

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)-8s - [%(name)s] - [%(filename)s:%(lineno)d] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    level = logging.DEBUG if debug else logging.INFO

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    log_file_path = os.environ.get("IRISMETA_LOG_FILE")
    if log_file_path:
        try:
            file_handler = logging.FileHandler(log_file_path, mode="a")
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.DEBUG)
            root_logger.addHandler(file_handler)
        except OSError as e:
            logging.error(f"Failed to initialize file logging: {e}")

    root_logger.setLevel(level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="irismeta", description="Show the merged metadata of an eye photo"
    )
    parser.add_argument("file", help="JPEG file to read")
    parser.add_argument(
        "--policy",
        type=int,
        choices=[policy.value for policy in WritePolicy],
        help="Write policy used for the merge (default: the saved setting)",
    )
    parser.add_argument(
        "--dump-exif", action="store_true", help="Log every EXIF field of the file"
    )
    parser.add_argument(
        "--dump-xmp", action="store_true", help="Log the raw XMP packet of the file"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    if args.policy is None:
        policy = get_write_policy()
    else:
        policy = WritePolicy(args.policy)

    try:
        record = MetadataReader.read(args.file, policy)
    except (FileNotFoundError, MetadataError) as e:
        logging.error(str(e))
        return 1

    for name, value in asdict(record).items():
        if value is None:
            continue
        if hasattr(value, "value"):
            value = value.value
        print(f"{name}: {value}")

    if args.dump_exif:
        BinaryTagReader.log_all_fields(args.file)
    if args.dump_xmp:
        MetadataReader.log_xmp_packet(args.file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
