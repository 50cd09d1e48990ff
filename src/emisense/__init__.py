"""EmiSense: live emission-test telemetry core.

The package ingests the two-channel gas telemetry pushed by the test bench,
runs timed measurement sessions over it, and hands finalized results to the
report backend.
"""

__version__ = "0.3.0"
