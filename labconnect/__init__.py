"""LabConnect: match a resume image against research labs."""

__version__ = "0.1.0"
