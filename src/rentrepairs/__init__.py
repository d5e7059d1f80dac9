"""rentrepairs: rental-property maintenance request core."""

__version__ = "0.1.0"
