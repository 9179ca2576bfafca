"""
Access service application.
"""
