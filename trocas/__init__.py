"""Trocas.app: returns and exchanges backend for Nuvemshop stores."""

__version__ = "0.1.0"
