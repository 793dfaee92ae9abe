"""
rolegate
========

Authentication and authorization glue for the web application: OAuth login
through the identity provider, signed sessions, role resolution and the
admin user/role management API.
"""

__version__ = "1.0.0"
