"""
Cadence - a terminal chat client for hosted LLM providers.
"""

__version__ = "0.3.0"
