"""
Transmission workflow: send customer packages to insurance companies and keep
the transmission history.
"""
