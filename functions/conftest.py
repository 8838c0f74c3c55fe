"""Pytest setup shared by the unit tests."""

import os

# The storage trigger in main.py resolves its bucket at import time; outside
# the emulator firebase_functions reads it from FIREBASE_CONFIG.
os.environ.setdefault(
    "FIREBASE_CONFIG", '{"storageBucket": "carben-connect.appspot.com"}'
)
