"""Hashing primitives for the stove PIN challenge/response."""

from pyhaassohn._crypto.hashing import md5_hex, session_secret

__all__ = ["md5_hex", "session_secret"]
