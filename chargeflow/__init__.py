"""
chargeflow - offline validation of captured OCPP-J traffic against JSON schemas.
"""

__version__ = "0.1.0"
