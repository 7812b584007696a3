"""
Adapters for upstream services.
"""
