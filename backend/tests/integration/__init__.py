"""
Integration tests package.

Exercises the SQLAlchemy store against a real (in-memory SQLite) database
and the Flask API through the test client.
"""
