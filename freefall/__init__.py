"""Free-fall detection against a simulated ICM-42670-P IMU over an in-process I2C bus."""

__version__ = "0.1.0"
__all__ = ["__version__"]