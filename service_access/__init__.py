"""
Tenant access service.
"""
