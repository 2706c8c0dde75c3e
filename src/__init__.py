# src/__init__.py - v1
"""promptaudit: batched, cached, multi-backend prompt quality analysis."""
