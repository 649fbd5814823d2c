# freefall

Free-fall detection for a six-axis IMU. The detector runs against a
simulated ICM-42670-P sensor that replays recorded measurements from a CSV
file.

The two halves talk over an in-process bus, `freefall.bus.I2CBus`: a one-byte
data line (`mem`) and four signals (`start`, `ack`, `transmit`, `stop`) that
share one lock.

- **Simulator** (`freefall.simulator.ImuSimulator`) is the slave at address
  `0x68`. It writes the configured ranges and sampling rate into
  `ACCEL_CONFIG0` and `GYRO_CONFIG0` of its register bank (`configure_imu`).
  On every read transaction it loads the next CSV row into the data
  registers (`update_imu_bank`) and answers with the requested register.
  When the CSV rows run out it closes the bus.
- **Detector** (`freefall.detector.FreeFallDetector`) is the bus master. It
  reads the configuration registers, turns register pairs into an
  `ImuSample` in g and degrees per second, and reports a free fall once all
  three acceleration axes have stayed below a threshold for at least a given
  number of milliseconds. The duration is counted in samples at the
  accelerometer's output data rate.

## Installation

```
pip install .
```

## Running

```
freefall [--config PATH] [--csv PATH]
```

- `--config` is the configuration file. The default is `resources/config.ini`.
- `--csv` is the file of IMU readings. The default is
  `resources/2023-01-16-15-33-09-imu.csv`.

Both default paths are relative to the current directory.

The command starts the simulator in a background thread and runs the
detector until the bus closes or an error ends the loop. Log lines go to
standard error, and each detected fall is logged as the warning
`====== FREE FALL DETECTED! ======`.

The exit status is 1 in these cases:
- the configuration file is invalid;
- the CSV file cannot be opened;
- the CSV has fewer rows than `start_row`.

Otherwise the exit status is 0.

### Configuration

The configuration file holds `name = value` lines, read by
`freefall.config.load_config`. `#` starts a comment, and `[section]` headers
put `section.` in front of the names that follow. The rules are:

- If the file is missing, a warning is logged and the defaults are used.
- Unknown options are ignored.
- Each value is converted to the type of its default.
- A malformed line, a value that cannot be converted or a repeated option is
  an error.

| key                   | default | meaning                                  |
|-----------------------|---------|------------------------------------------|
| `free_fall_threshold` | `0.3`   | per-axis acceleration limit, in g        |
| `free_fall_duration`  | `100`   | time below the limit that counts, in ms  |
| `sampling_rate`       | `50.0`  | simulated output data rate, in Hz        |
| `accel_range`         | `2.0`   | accelerometer full scale, ±g (16, 8, 4, 2) |
| `gyro_range`          | `250.0` | gyroscope full scale, ±dps (2000, 1000, 500, 250) |
| `start_row`           | `0`     | data rows of the CSV to skip             |

### CSV data

The first line of the CSV holds the column names. The columns `ax`, `ay`,
`az` hold acceleration in g, and `gx`, `gy`, `gz` hold angular rate in
degrees per second. A missing column reads as 0.

Every register read takes the next row. Reading one sample takes several
register reads, so the bytes of one sample may come from different rows.

## Using the pieces

```python
from freefall.bus import I2CBus
from freefall.detector import FreeFallDetector, accel_scale_factor
from freefall.imu import BANK_0_SIZE, ImuRegister, ImuSample
from freefall.simulator import configure_imu

bank = bytearray(BANK_0_SIZE)
configure_imu(2.0, 250.0, 50.0, bank)
accel_scale_factor(bank[ImuRegister.ACCEL_CONFIG0])  # 16384.0 LSB per g

detector = FreeFallDetector(I2CBus(), threshold=0.3, duration_ms=100)
detector.check_free_fall_zone(ImuSample(0.1, 0.0, 0.05, 0.0, 0.0, 0.0))  # True
```

Other entry points:

- **Decoding config registers.** `gyro_scale_factor`, `gyro_sampling_rate`,
  `accel_scale_factor` and `accel_sampling_rate` in `freefall.detector`
  decode config register values. The rate functions raise `ValueError` for
  reserved codes.
- **Reading a register.** `FreeFallDetector.read_byte` reads one register
  over the bus. It raises `TimeoutError` when the device does not acknowledge
  within `max_retries` attempts, and `ConnectionError` when the bus is closed.
- **Feeding samples by hand.** `FreeFallDetector.detect_free_fall` takes one
  sample and returns `True` when it reports a fall. It needs the
  accelerometer rate, so call `read_imu_config()` first.
- **Frame helpers.** `freefall.i2c` has `send_addr`, `send_frame`,
  `receive_frame`, `scan_addr` and `check_rw`. They work on any one-byte
  `bytearray`, and the module also defines the `BusyFlag`, `RwBit` and
  `AckBit` enums.

## What it does not do

- It does not talk to a real sensor or a real I2C bus. The bus exists only
  inside one process.
- The simulator acknowledges write transactions but does not apply them.
  The detector only reads.
- A detected fall is only logged, and `FreeFallDetector.run` returns the
  number of falls it saw. No other notification is sent.

## Tests

```
pip install .[test]
pytest
```