"""Register map and sample type of the ICM-42670-P inertial sensor."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import IntEnum
from typing import Iterable

__all__ = [
    "AXES",
    "AXIS_REGISTERS",
    "BANK_0_SIZE",
    "ICM_42670_P_ADDR",
    "ImuRegister",
    "ImuSample",
]

ICM_42670_P_ADDR = 0x68
BANK_0_SIZE = 0x2F


class ImuRegister(IntEnum):
    """Addresses of the bank 0 registers that are used."""

    ACCEL_DATA_X1 = 0x0B
    ACCEL_DATA_X0 = 0x0C
    ACCEL_DATA_Y1 = 0x0D
    ACCEL_DATA_Y0 = 0x0E
    ACCEL_DATA_Z1 = 0x0F
    ACCEL_DATA_Z0 = 0x10
    GYRO_DATA_X1 = 0x11
    GYRO_DATA_X0 = 0x12
    GYRO_DATA_Y1 = 0x13
    GYRO_DATA_Y0 = 0x14
    GYRO_DATA_Z1 = 0x15
    GYRO_DATA_Z0 = 0x16
    GYRO_CONFIG0 = 0x20
    ACCEL_CONFIG0 = 0x21


AXES = ("ax", "ay", "az", "gx", "gy", "gz")

# High and low data register of each sample axis.
AXIS_REGISTERS = {
    "ax": (ImuRegister.ACCEL_DATA_X1, ImuRegister.ACCEL_DATA_X0),
    "ay": (ImuRegister.ACCEL_DATA_Y1, ImuRegister.ACCEL_DATA_Y0),
    "az": (ImuRegister.ACCEL_DATA_Z1, ImuRegister.ACCEL_DATA_Z0),
    "gx": (ImuRegister.GYRO_DATA_X1, ImuRegister.GYRO_DATA_X0),
    "gy": (ImuRegister.GYRO_DATA_Y1, ImuRegister.GYRO_DATA_Y0),
    "gz": (ImuRegister.GYRO_DATA_Z1, ImuRegister.GYRO_DATA_Z0),
}


@dataclass(frozen=True)
class ImuSample:
    """One reading: acceleration in g, angular rate in degrees per second."""

    ax: float = 0.0
    ay: float = 0.0
    az: float = 0.0
    gx: float = 0.0
    gy: float = 0.0
    gz: float = 0.0

    @classmethod
    def from_columns(cls, headers: Iterable[str], values: Iterable[float]) -> "ImuSample":
        """Build a sample from named columns; the first match wins, missing axes are 0."""
        columns: dict[str, float] = {}
        for name, value in zip(headers, values):
            columns.setdefault(name, value)
        return cls(**{f.name: columns.get(f.name, 0.0) for f in fields(cls)})

    @property
    def accel(self) -> tuple[float, float, float]:
        return (self.ax, self.ay, self.az)

    @property
    def gyro(self) -> tuple[float, float, float]:
        return (self.gx, self.gy, self.gz)