"""Installment loan (EMI) tracking: schedule engine, loan cache and dashboards."""

__version__ = "0.1.0"
