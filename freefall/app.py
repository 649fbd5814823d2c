"""Command line entry: replay recorded IMU data and watch it for free falls."""

from __future__ import annotations

import argparse
import logging
import threading
from pathlib import Path
from typing import Sequence

from freefall.bus import I2CBus
from freefall.config import load_config
from freefall.detector import FreeFallDetector
from freefall.simulator import ImuSimulator

__all__ = ["DEFAULTS", "main"]

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path("resources/config.ini")
DEFAULT_CSV = Path("resources/2023-01-16-15-33-09-imu.csv")

DEFAULTS = {
    "free_fall_threshold": 0.3,
    "free_fall_duration": 100,
    "sampling_rate": 50.0,
    "accel_range": 2.0,
    "gyro_range": 250.0,
    "start_row": 0,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="freefall",
        description="Replay recorded IMU readings over a simulated I2C bus and detect free falls.",
    )
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="configuration file")
    parser.add_argument("--csv", type=Path, default=DEFAULT_CSV, help="CSV file of IMU readings")
    return parser


def _init_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] <%(levelname)s>: %(message)s",
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Run the simulated sensor and the detector; return the exit status."""
    args = _build_parser().parse_args(argv)
    _init_logging()
    logger.info("Free fall detector started.")

    try:
        config = load_config(args.config, DEFAULTS)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    try:
        csv_file = open(args.csv, encoding="utf-8")
    except OSError:
        logger.error("Failed to open CSV file: %s", args.csv)
        return 1

    with csv_file:
        bus = I2CBus()
        try:
            simulator = ImuSimulator(
                bus,
                csv_file,
                accel_range=config["accel_range"],
                gyro_range=config["gyro_range"],
                sampling_rate=config["sampling_rate"],
                start_row=config["start_row"],
            )
        except ValueError as exc:
            logger.error("%s", exc)
            return 1

        thread = threading.Thread(target=simulator.serve, name="imu-simulator", daemon=True)
        thread.start()
        detector = FreeFallDetector(
            bus,
            threshold=config["free_fall_threshold"],
            duration_ms=config["free_fall_duration"],
        )
        try:
            detector.run()
        finally:
            bus.close()
            thread.join()

    logger.info("Free fall detector finished.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())