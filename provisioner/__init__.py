"""
Database provisioning core: encrypted setup configuration, connection
testing for SQLite and PostgreSQL, and creation of the authentication schema.
"""

__version__ = "0.1.0"
