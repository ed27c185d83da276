"""
Test suite for the provider import service.
"""
