"""
Insurance company registry (Settings tab).
"""
