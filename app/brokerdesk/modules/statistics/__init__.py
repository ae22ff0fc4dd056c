"""
Statistics dashboard: registration and transmission aggregates.
"""
