"""Personal time tracker: projects, tasks, a single running timer and period reports."""

__version__ = "0.1.0"
