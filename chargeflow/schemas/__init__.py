"""Bundled OCPP JSON schemas, one directory per protocol version."""
