"""Shop-floor production scheduling and station-dependency engine."""

__version__ = "0.1.0"
