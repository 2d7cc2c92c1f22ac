"""Clevo laptop fan control: hardware daemon, PID fan controller client and their wire protocol."""

__version__ = "0.1.0"