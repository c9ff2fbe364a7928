"""Notification delivery service for the wealth-management CRM.

The package intentionally re-exports nothing; the layers live in
``domain``, ``infrastructure``, ``application`` and ``interfaces``.
"""
