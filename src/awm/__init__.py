"""Agent work manager: task tracking, overdue detection and two-tier agent wakes."""

__version__ = "0.1.0"
