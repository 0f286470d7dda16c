"""
Orchestration services: health probing, dispatch, metrics and comparisons.
"""
