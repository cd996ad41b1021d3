"""Multi-level approval workflow and monthly payroll calculation engine."""

__version__ = "0.1.0"
