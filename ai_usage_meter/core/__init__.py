"""
Core modules for AI Usage Meter.

This package contains pricing, token estimation, prompt templates
and cost projection.
"""
