"""Test fixtures for Helix Hub tests.

Provides fixtures for:
- Legacy and instructions enquiry rows
- Known shared-ID and shared-inbox cases
"""

from .enquiries import *
