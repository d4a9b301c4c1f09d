"""API module for MedAssist."""
