"""
Query profiling.

A profiler collects one entry per profiled driver call while it is active.
The connection facade feeds it through `add_profile()`.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    'ProfileEntry',
    'BaseProfiler',
    'Profiler',
]


@dataclass(slots=True, frozen=True)
class ProfileEntry:
    """A single profiled call."""
    duration: float
    function: str | None = None
    statement: str | None = None
    bind_values: Any = field(default_factory=dict)


class BaseProfiler(ABC):
    """Interface the connection facade profiles against.
    """

    @abstractmethod
    def activate(self) -> None:
        """Start recording entries."""

    @abstractmethod
    def deactivate(self) -> None:
        """Stop recording entries."""

    @abstractmethod
    def is_active(self) -> bool:
        """Is the profiler recording?"""

    @abstractmethod
    def add_profile(self, duration: float, function: str | None = None,
                    statement: str | None = None, bind_values: Any = None) -> None:
        """Record an entry; ignored while inactive."""

    @abstractmethod
    def get_profiles(self) -> list[ProfileEntry]:
        """All recorded entries, oldest first."""

    @abstractmethod
    def reset_profiles(self) -> None:
        """Drop all recorded entries."""


class Profiler(BaseProfiler):
    """In-memory profiler.

    Entries accumulate without bound until `reset_profiles()` is called.
    """

    def __init__(self, active: bool = False) -> None:
        self._active = active
        self._profiles: list[ProfileEntry] = []

    def __len__(self) -> int:
        return len(self._profiles)

    def activate(self) -> None:
        self._active = True

    def deactivate(self) -> None:
        self._active = False

    def is_active(self) -> bool:
        return self._active

    def add_profile(self, duration: float, function: str | None = None,
                    statement: str | None = None, bind_values: Any = None) -> None:
        """Add a profile entry.

        Args:
            duration: Call duration in seconds, stored rounded to milliseconds
            function: The facade method that made the entry
            statement: The SQL statement, if any
            bind_values: The values bound to the statement, if any
        """
        if not self.is_active():
            return

        self._profiles.append(ProfileEntry(
            duration=round(duration, 3),
            function=function,
            statement=statement,
            bind_values=bind_values if bind_values is not None else {},
        ))

    def get_profiles(self) -> list[ProfileEntry]:
        return list(self._profiles)

    def reset_profiles(self) -> None:
        self._profiles.clear()
