"""Bus master that reads the inertial sensor and detects free falls."""

from __future__ import annotations

import logging
import struct

from freefall import i2c
from freefall.bus import I2CBus
from freefall.i2c import BusyFlag, RwBit
from freefall.imu import AXIS_REGISTERS, ICM_42670_P_ADDR, ImuRegister, ImuSample

__all__ = [
    "FreeFallDetector",
    "accel_sampling_rate",
    "accel_scale_factor",
    "gyro_sampling_rate",
    "gyro_scale_factor",
]

logger = logging.getLogger(__name__)

# Indexed by the two FS_SEL bits of the config register.
_GYRO_SCALES = (16.4, 32.8, 65.5, 131.0)  # LSB per dps: 2000, 1000, 500, 250 dps
_ACCEL_SCALES = (2048.0, 4096.0, 8192.0, 16384.0)  # LSB per g: 16, 8, 4, 2 g

_GYRO_RATES = {
    0x05: 1600.0,
    0x06: 800.0,
    0x07: 400.0,
    0x08: 200.0,
    0x09: 100.0,
    0x0A: 50.0,
    0x0B: 25.0,
    0x0C: 12.5,
}
_ACCEL_RATES = {**_GYRO_RATES, 0x0D: 6.25, 0x0E: 3.125, 0x0F: 1.5625}


def _full_scale_code(config0: int) -> int:
    return (config0 & 0x60) >> 5


def _rate(table: dict[int, float], config0: int, sensor: str) -> float:
    odr = config0 & 0x0F
    try:
        return table[odr]
    except KeyError:
        raise ValueError(f"reserved {sensor} ODR code 0x{odr:X}") from None


def gyro_scale_factor(config0: int) -> float:
    """LSB per degree per second selected by a GYRO_CONFIG0 value."""
    return _GYRO_SCALES[_full_scale_code(config0)]


def gyro_sampling_rate(config0: int) -> float:
    """Output data rate in Hz selected by a GYRO_CONFIG0 value."""
    return _rate(_GYRO_RATES, config0, "gyroscope")


def accel_scale_factor(config0: int) -> float:
    """LSB per g selected by an ACCEL_CONFIG0 value."""
    return _ACCEL_SCALES[_full_scale_code(config0)]


def accel_sampling_rate(config0: int) -> float:
    """Output data rate in Hz selected by an ACCEL_CONFIG0 value."""
    return _rate(_ACCEL_RATES, config0, "accelerometer")


class FreeFallDetector:
    """Reads samples over the bus and reports sustained near-zero acceleration.

    A free fall is reported once every axis of the acceleration has stayed
    below ``threshold`` g for at least ``duration_ms`` milliseconds, counted
    in samples at the accelerometer's output data rate.
    """

    ACK_TIMEOUT = 0.2

    def __init__(self, bus: I2CBus, threshold: float = 0.3, duration_ms: int = 100) -> None:
        self.bus = bus
        self.threshold = threshold
        self.duration_ms = duration_ms
        self.gyro_scale: float | None = None
        self.gyro_rate: float | None = None
        self.accel_scale: float | None = None
        self.accel_rate: float | None = None
        self.free_fall = False
        self.counter = 0

    def _ensure_open(self) -> None:
        if self.bus.closed:
            raise ConnectionError("I2C bus is closed")

    def _await(self, condition) -> None:
        if not self.bus.wait(condition):
            raise ConnectionError("I2C bus closed during transaction")

    def read_byte(self, slave_addr: int, reg_addr: int, max_retries: int = 10) -> int:
        """Read one register of a slave device.

        Raises TimeoutError if the device does not acknowledge its address
        within ``max_retries`` attempts, ConnectionError if the bus closes.
        """
        bus = self.bus
        with bus.lock:
            self._ensure_open()
            bus.busy = BusyFlag.BUSY
            try:
                for _ in range(max_retries):
                    bus.start.notify()
                    i2c.send_addr(bus.mem, slave_addr, RwBit.READ)
                    if bus.wait(bus.ack, self.ACK_TIMEOUT):
                        break
                    self._ensure_open()
                else:
                    message = (
                        f"Master (detector): Failed to connect to device after "
                        f"{max_retries} attempts."
                    )
                    logger.error(message)
                    raise TimeoutError(message)

                i2c.send_frame(bus.mem, reg_addr)
                bus.transmit.notify()
                self._await(bus.ack)
                bus.ack.notify()
                self._await(bus.transmit)
                data = i2c.receive_frame(bus.mem)
                bus.stop.notify()
                return data
            finally:
                bus.busy = BusyFlag.FREE

    def _read_register(self, register: int) -> int:
        return self.read_byte(ICM_42670_P_ADDR, register)

    def read_imu_config(self) -> None:
        """Read the full-scale ranges and output data rates of the sensor."""
        gyro_config = self._read_register(ImuRegister.GYRO_CONFIG0)
        self.gyro_scale = gyro_scale_factor(gyro_config)
        self.gyro_rate = gyro_sampling_rate(self._read_register(ImuRegister.GYRO_CONFIG0))
        self.accel_scale = accel_scale_factor(self._read_register(ImuRegister.ACCEL_CONFIG0))
        self.accel_rate = accel_sampling_rate(self._read_register(ImuRegister.ACCEL_CONFIG0))

    def read_sample(self) -> ImuSample:
        """Read all six axes and convert them to g and degrees per second."""
        self.accel_scale = accel_scale_factor(self._read_register(ImuRegister.ACCEL_CONFIG0))
        self.gyro_scale = gyro_scale_factor(self._read_register(ImuRegister.GYRO_CONFIG0))

        values: dict[str, float] = {}
        for axis, (high, low) in AXIS_REGISTERS.items():
            raw_bytes = bytes((self._read_register(high), self._read_register(low)))
            (raw,) = struct.unpack(">h", raw_bytes)
            scale = self.accel_scale if axis.startswith("a") else self.gyro_scale
            values[axis] = raw / scale
        sample = ImuSample(**values)
        logger.info("Acceleration: ax=%g, ay=%g, az=%g", sample.ax, sample.ay, sample.az)
        return sample

    def check_free_fall_zone(self, sample: ImuSample) -> bool:
        """Return True if every acceleration axis is below the threshold."""
        return all(abs(value) < self.threshold for value in sample.accel)

    def _reset(self) -> None:
        self.free_fall = False
        self.counter = 0

    def detect_free_fall(self, sample: ImuSample) -> bool:
        """Feed one sample; return True when a free fall is reported."""
        if not self.check_free_fall_zone(sample):
            if self.free_fall:
                self._reset()
            return False

        logger.info("Free fall counter: %d", self.counter)
        if not self.free_fall:
            self.counter = 1
            self.free_fall = True
            return False

        if self.accel_rate is None:
            raise RuntimeError("the accelerometer rate is unknown; call read_imu_config() first")
        self.counter += 1
        duration_ms = 1000.0 * (self.counter / self.accel_rate)
        if duration_ms >= self.duration_ms:
            logger.warning("====== FREE FALL DETECTED! ======")
            self._reset()
            return True
        return False

    def run(self) -> int:
        """Read the configuration, then samples until an error; return the number of free falls."""
        detections = 0
        try:
            self.read_imu_config()
            while True:
                if self.detect_free_fall(self.read_sample()):
                    detections += 1
        except Exception as exc:  # the loop ends on any failure, logging it
            logger.error("Error in detection loop: %s", exc)
        return detections