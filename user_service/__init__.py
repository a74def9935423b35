"""
User service: registration, credential checks and bearer tokens for profile lookup.
"""
