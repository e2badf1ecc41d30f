"""Lynae - WhatsApp command bot."""

__version__ = "0.1.0"
