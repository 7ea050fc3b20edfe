"""
Shared infrastructure for the presence gateway: configuration, logging, errors.
"""
