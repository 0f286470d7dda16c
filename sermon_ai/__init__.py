"""
Sermon AI provider orchestration and resilience layer.
"""
__version__ = "1.0.0"
