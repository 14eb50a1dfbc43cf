"""Request calendar and weekly timesheet approval engine."""

__version__ = "1.0.0"
