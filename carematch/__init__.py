"""CareMatch: canonical entity resolution and requirement matching for healthcare staffing."""

__version__ = "0.1.0"
