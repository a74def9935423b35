"""
Authentication core for the user service.

This module provides:
- Password hashing (bcrypt)
- JWT access tokens
- User registration, login and profile lookup
"""
