import struct
import threading

import pytest

from freefall import i2c
from freefall.bus import I2CBus
from freefall.i2c import RwBit
from freefall.imu import AXIS_REGISTERS, BANK_0_SIZE, ICM_42670_P_ADDR, ImuRegister, ImuSample
from freefall.simulator import (
    ImuSimulator,
    configure_imu,
    load_next_sample,
    parse_headers,
    skip_rows,
    update_imu_bank,
)

CSV = [
    "time, ax, ay, az, gx, gy, gz\n",
    "0.0, 0.5, -0.25, 1.0, 10.0, -20.0, 30.0\n",
    "0.1, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0\n",
]


def _master_read(bus, reg, addr=ICM_42670_P_ADDR, attempts=25):
    with bus.lock:
        for _ in range(attempts):
            bus.start.notify()
            i2c.send_addr(bus.mem, addr, RwBit.READ)
            if bus.wait(bus.ack, 0.2):
                break
        else:
            return None
        i2c.send_frame(bus.mem, reg)
        bus.transmit.notify()
        if not bus.wait(bus.ack, 2.0):
            return None
        bus.ack.notify()
        if not bus.wait(bus.transmit, 2.0):
            return None
        data = i2c.receive_frame(bus.mem)
        bus.stop.notify()
        return data


def _expected(sample, reg, accel_range=2.0, gyro_range=250.0):
    bank = bytearray(BANK_0_SIZE)
    update_imu_bank(accel_range, gyro_range, sample, bank)
    return bank[reg]


@pytest.fixture
def running():
    bus = I2CBus()
    simulator = ImuSimulator(bus, CSV)
    thread = threading.Thread(target=simulator.serve, daemon=True)
    thread.start()
    yield bus, simulator, thread
    bus.close()
    thread.join(2.0)


def test_parse_headers_trims_columns():
    lines = iter(["time , ax,ay\n", "1,2,3\n"])
    assert parse_headers(lines) == ["time", "ax", "ay"]
    assert next(lines) == "1,2,3\n"


def test_parse_headers_drops_trailing_empty_column():
    assert parse_headers(iter(["ax,ay,\n"])) == ["ax", "ay"]


def test_parse_headers_of_empty_input():
    assert parse_headers(iter([])) == []


def test_skip_rows_consumes_lines():
    lines = iter(["a", "b", "c"])
    skip_rows(lines, 2)
    assert list(lines) == ["c"]


def test_skip_rows_raises_when_too_short():
    with pytest.raises(ValueError, match="start_row=3"):
        skip_rows(iter(["a"]), 3)


def test_load_next_sample_maps_columns():
    lines = iter(CSV)
    headers = parse_headers(lines)
    sample = load_next_sample(lines, headers)
    assert sample == ImuSample(0.5, -0.25, 1.0, 10.0, -20.0, 30.0)


def test_load_next_sample_missing_column_is_zero():
    sample = load_next_sample(iter(["1.5, 2.5"]), ["ax", "time"])
    assert sample == ImuSample(ax=1.5)


def test_load_next_sample_returns_none_at_end():
    assert load_next_sample(iter([]), ["ax"]) is None


def test_load_next_sample_rejects_bad_number():
    with pytest.raises(ValueError):
        load_next_sample(iter(["abc"]), ["ax"])


def test_configure_imu_default_configuration():
    bank = bytearray(BANK_0_SIZE)
    configure_imu(2.0, 250.0, 50.0, bank)
    assert bank[ImuRegister.ACCEL_CONFIG0] == 0x6A
    assert bank[ImuRegister.GYRO_CONFIG0] == 0x6A


def test_configure_imu_unknown_range_uses_widest():
    widest, unknown = bytearray(BANK_0_SIZE), bytearray(BANK_0_SIZE)
    configure_imu(16.0, 2000.0, 100.0, widest)
    configure_imu(3.0, 300.0, 100.0, unknown)
    assert unknown == widest


def test_configure_imu_odr_code_falls_as_rate_rises():
    rates = [1.6, 3.2, 7.0, 13.0, 30.0, 60.0, 150.0, 300.0, 500.0, 1000.0, 2000.0]
    codes = []
    for rate in rates:
        bank = bytearray(BANK_0_SIZE)
        configure_imu(2.0, 250.0, rate, bank)
        codes.append(bank[ImuRegister.ACCEL_CONFIG0] & 0x0F)
    assert codes == sorted(codes, reverse=True)
    assert len(set(codes)) == len(codes)


def test_configure_imu_very_low_rate_falls_back_to_default():
    low, default = bytearray(BANK_0_SIZE), bytearray(BANK_0_SIZE)
    configure_imu(2.0, 250.0, 1.0, low)
    configure_imu(2.0, 250.0, 50.0, default)
    assert low == default


def test_update_imu_bank_round_trip():
    sample = ImuSample(0.5, -0.25, 1.0, 10.0, -20.0, 30.0)
    bank = bytearray(BANK_0_SIZE)
    update_imu_bank(2.0, 250.0, sample, bank)
    for axis, (high, low) in AXIS_REGISTERS.items():
        (raw,) = struct.unpack(">h", bytes([bank[high], bank[low]]))
        scale = 16384.0 if axis.startswith("a") else 131.0
        assert raw / scale == pytest.approx(getattr(sample, axis), abs=1.0 / scale)


def test_update_imu_bank_saturates():
    bank = bytearray(BANK_0_SIZE)
    update_imu_bank(2.0, 250.0, ImuSample(ax=10.0, ay=-10.0), bank)
    high, low = AXIS_REGISTERS["ax"]
    assert struct.unpack(">h", bytes([bank[high], bank[low]]))[0] == 32767
    high, low = AXIS_REGISTERS["ay"]
    assert struct.unpack(">h", bytes([bank[high], bank[low]]))[0] == -(2**15)


def test_simulator_configures_bank_on_creation():
    simulator = ImuSimulator(I2CBus(), CSV, 2.0, 250.0, 50.0, 0)
    bank = bytearray(BANK_0_SIZE)
    configure_imu(2.0, 250.0, 50.0, bank)
    assert simulator.bank == bank
    assert simulator.headers == ["time", "ax", "ay", "az", "gx", "gy", "gz"]


def test_simulator_start_row_too_large_raises():
    with pytest.raises(ValueError):
        ImuSimulator(I2CBus(), CSV, start_row=5)


def test_handle_transaction_on_closed_bus_stops():
    bus = I2CBus()
    simulator = ImuSimulator(bus, CSV)
    bus.close()
    assert simulator.handle_transaction() is False


def test_handle_transaction_idle_keeps_serving():
    simulator = ImuSimulator(I2CBus(), CSV)
    assert simulator.handle_transaction() is True


def test_reads_replay_rows_in_order(running):
    bus, _, thread = running
    first = _master_read(bus, ImuRegister.ACCEL_DATA_X1)
    second = _master_read(bus, ImuRegister.GYRO_DATA_Z0)
    assert first == _expected(ImuSample(0.5, -0.25, 1.0, 10.0, -20.0, 30.0), ImuRegister.ACCEL_DATA_X1)
    assert second == _expected(ImuSample(), ImuRegister.GYRO_DATA_Z0)
    assert _master_read(bus, ImuRegister.ACCEL_DATA_X1) is None
    thread.join(2.0)
    assert bus.closed is True
    assert not thread.is_alive()


def test_config_register_read(running):
    bus, simulator, _ = running
    assert _master_read(bus, ImuRegister.ACCEL_CONFIG0) == simulator.bank[ImuRegister.ACCEL_CONFIG0]


def test_start_row_skips_rows():
    bus = I2CBus()
    simulator = ImuSimulator(bus, CSV, start_row=1)
    thread = threading.Thread(target=simulator.serve, daemon=True)
    thread.start()
    try:
        data = _master_read(bus, ImuRegister.ACCEL_DATA_Z1)
        assert data == _expected(ImuSample(), ImuRegister.ACCEL_DATA_Z1)
    finally:
        bus.close()
        thread.join(2.0)


def test_other_address_gets_no_ack(running):
    bus, _, _ = running
    assert _master_read(bus, ImuRegister.ACCEL_DATA_X1, addr=0x10, attempts=2) is None
    data = _master_read(bus, ImuRegister.ACCEL_DATA_X1)
    assert data == _expected(ImuSample(0.5, -0.25, 1.0, 10.0, -20.0, 30.0), ImuRegister.ACCEL_DATA_X1)