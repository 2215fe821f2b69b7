"""Provision a minimal Debian install into a GNOME desktop workstation."""

__version__ = "1.0.0"
