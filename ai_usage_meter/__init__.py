"""
AI Usage Meter.

Multi-provider LLM client that meters the cost of every call.
"""

__version__ = "0.1.0"
