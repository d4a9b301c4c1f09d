"""MedAssist - multi-provider medical guidance service."""

__version__ = "1.0.0"
