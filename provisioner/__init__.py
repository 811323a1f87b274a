"""Stellar toolchain provisioner."""

__version__ = "0.1.0"
