"""Care application for the MommyCare backend.

This package contains the identity store, the permission-request
review workflow, appointments, messaging and the REST routes that
expose them.
"""
