"""
Privileges Service application.
"""
