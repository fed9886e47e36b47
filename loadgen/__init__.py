"""HTTP load generation harness with k6-style scenarios and thresholds."""

__version__ = "0.1.0"
