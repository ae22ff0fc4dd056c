"""
Customers module: registration and the customer directory.
"""
