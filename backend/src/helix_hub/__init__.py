"""
Helix Hub - Enquiry Identity Service

Resolves duplicated prospective-client enquiries collected across the
firm's intake databases into identity groups for deduplicated display.
"""

__version__ = "0.1.0"
