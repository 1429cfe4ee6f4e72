"""
Domain layer - Core business entities and rules
"""
