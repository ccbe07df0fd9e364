"""
Identity module.

Caller identity (`Actor`) and pure access-control evaluation.
"""
