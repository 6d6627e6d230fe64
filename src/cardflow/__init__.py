"""
Cardflow: batch job-card processing with retries, timeouts and phase orchestration.

A framework for running independent work items through multi-phase worker
cycles where one item's failure never takes the rest of the batch down.
"""

__version__ = "0.1.0"
