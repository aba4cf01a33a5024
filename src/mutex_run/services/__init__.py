"""External process integration for mutex-run.

- process: Spawning, signal forwarding and exit code normalization
"""

from .process import ChildLaunchError, ChildProcess, NoCommandError, spawn

__all__ = [
    "ChildLaunchError",
    "ChildProcess",
    "NoCommandError",
    "spawn",
]
