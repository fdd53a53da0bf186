"""
QrGo: event booking and QR check-in service.
"""

__version__ = "1.0.0"
