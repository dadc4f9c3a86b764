"""ClickUp "assigned to me" reorganized by responsibility, with local pins and snoozes."""

__version__ = "0.1.0"
