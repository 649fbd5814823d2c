"""Simulated ICM-42670-P slave that replays IMU readings from CSV data."""

from __future__ import annotations

import logging
import struct
from typing import Iterable, Iterator

from freefall import i2c
from freefall.bus import I2CBus
from freefall.i2c import RwBit
from freefall.imu import AXIS_REGISTERS, BANK_0_SIZE, ICM_42670_P_ADDR, ImuRegister, ImuSample

__all__ = [
    "ImuSimulator",
    "configure_imu",
    "load_next_sample",
    "parse_headers",
    "skip_rows",
    "update_imu_bank",
]

logger = logging.getLogger(__name__)

# Full-scale range -> (FS_SEL code, LSB per unit). Unknown ranges fall back to the first entry.
_ACCEL_RANGES = {16: (0x00, 2048.0), 8: (0x01, 4096.0), 4: (0x02, 8192.0), 2: (0x03, 16384.0)}
_GYRO_RANGES = {2000: (0x00, 16.4), 1000: (0x01, 32.8), 500: (0x02, 65.5), 250: (0x03, 131.0)}

# Lowest rate -> (accel ODR code, gyro ODR code); the gyroscope has no codes below 12.5 Hz.
_ODR_TABLE = (
    (1600.0, 0x05, 0x05),
    (800.0, 0x06, 0x06),
    (400.0, 0x07, 0x07),
    (200.0, 0x08, 0x08),
    (100.0, 0x09, 0x09),
    (50.0, 0x0A, 0x0A),
    (25.0, 0x0B, 0x0B),
    (12.5, 0x0C, 0x0C),
    (6.25, 0x0D, 0x0C),
    (3.125, 0x0E, 0x0C),
    (1.5625, 0x0F, 0x0C),
)
_ODR_FALLBACK = (0x0A, 0x0A)  # 50 Hz

_INT16_MIN, _INT16_MAX = -(1 << 15), (1 << 15) - 1


def _split_row(line: str) -> list[str]:
    parts = line.rstrip("\n").split(",")
    if parts[-1] == "":
        parts.pop()
    return [part.strip() for part in parts]


def parse_headers(lines: Iterator[str]) -> list[str]:
    """Consume the header line and return its trimmed column names."""
    return _split_row(next(lines, ""))


def skip_rows(lines: Iterator[str], start_row: int = 0) -> None:
    """Consume ``start_row`` data lines; raise ValueError if there are fewer."""
    for skipped in range(start_row):
        if next(lines, None) is None:
            raise ValueError(
                f"CSV data does not contain enough rows to skip to start_row={start_row} "
                f"(only {skipped} available)"
            )


def load_next_sample(lines: Iterator[str], headers: list[str]) -> ImuSample | None:
    """Read the next data line as a sample, or return None when the data is exhausted."""
    line = next(lines, None)
    if line is None:
        logger.warning("No subsequent IMU reading.")
        return None
    values = [float(cell) for cell in _split_row(line)]
    return ImuSample.from_columns(headers, values)


def configure_imu(accel_range: float, gyro_range: float, sampling_rate: float, bank: bytearray) -> None:
    """Write ACCEL_CONFIG0 and GYRO_CONFIG0 into ``bank`` for the given ranges and rate."""
    accel_fss = _ACCEL_RANGES.get(int(accel_range), _ACCEL_RANGES[16])[0]
    gyro_fss = _GYRO_RANGES.get(int(gyro_range), _GYRO_RANGES[2000])[0]
    accel_odr, gyro_odr = next(
        ((accel, gyro) for rate, accel, gyro in _ODR_TABLE if sampling_rate >= rate),
        _ODR_FALLBACK,
    )
    bank[ImuRegister.ACCEL_CONFIG0] = ((accel_fss << 5) | (accel_odr & 0x0F)) & 0xFF
    bank[ImuRegister.GYRO_CONFIG0] = ((gyro_fss << 5) | (gyro_odr & 0x0F)) & 0xFF


def _to_raw(value: float, scale: float) -> int:
    return max(_INT16_MIN, min(_INT16_MAX, int(value * scale)))


def update_imu_bank(accel_range: float, gyro_range: float, sample: ImuSample, bank: bytearray) -> None:
    """Write the sample's six axes into the data registers of ``bank`` as big-endian int16."""
    accel_scale = _ACCEL_RANGES.get(int(accel_range), _ACCEL_RANGES[16])[1]
    gyro_scale = _GYRO_RANGES.get(int(gyro_range), _GYRO_RANGES[2000])[1]
    for axis, (high, low) in AXIS_REGISTERS.items():
        scale = accel_scale if axis.startswith("a") else gyro_scale
        bank[high], bank[low] = struct.pack(">h", _to_raw(getattr(sample, axis), scale))


class ImuSimulator:
    """Slave side of the bus: answers register reads with replayed samples.

    Every read transaction loads the next CSV row into the data registers
    before answering, as the simulated device does.
    """

    POLL_INTERVAL = 0.1

    def __init__(
        self,
        bus: I2CBus,
        csv_lines: Iterable[str],
        accel_range: float = 2.0,
        gyro_range: float = 250.0,
        sampling_rate: float = 50.0,
        start_row: int = 0,
    ) -> None:
        self.bus = bus
        self.accel_range = accel_range
        self.gyro_range = gyro_range
        self.sampling_rate = sampling_rate
        self.device_addr = ICM_42670_P_ADDR
        self.bank = bytearray(BANK_0_SIZE)
        configure_imu(accel_range, gyro_range, sampling_rate, self.bank)
        self._lines = iter(csv_lines)
        self.headers = parse_headers(self._lines)
        skip_rows(self._lines, start_row)

    def _register(self, reg_addr: int) -> int:
        return self.bank[reg_addr] if reg_addr < len(self.bank) else 0x00

    def handle_transaction(self) -> bool:
        """Serve at most one transaction; return False once serving should stop."""
        bus = self.bus
        with bus.lock:
            if bus.closed:
                return False
            if not bus.wait(bus.start, self.POLL_INTERVAL):
                return not bus.closed
            if not i2c.scan_addr(bus.mem, self.device_addr):
                return True
            mode = i2c.check_rw(bus.mem)

            bus.ack.notify()
            if not bus.wait(bus.transmit):
                return False
            reg_addr = i2c.receive_frame(bus.mem)
            bus.ack.notify()

            if mode is RwBit.WRITE:
                return True

            if not bus.wait(bus.ack):
                return False
            sample = load_next_sample(self._lines, self.headers)
            if sample is None:
                logger.info("End of CSV file reached.")
                bus.close()
                return False
            update_imu_bank(self.accel_range, self.gyro_range, sample, self.bank)

            i2c.send_frame(bus.mem, self._register(reg_addr))
            bus.transmit.notify()
            bus.wait(bus.stop)
            return not bus.closed

    def serve(self) -> None:
        """Serve transactions until the data runs out or the bus is closed."""
        logger.info("IMU simulator started.")
        while self.handle_transaction():
            pass
        logger.info("IMU simulator finished.")