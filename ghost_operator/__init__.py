"""Kubernetes operator that provisions Ghost blogs per tenant namespace."""

__version__ = "0.1.0"
