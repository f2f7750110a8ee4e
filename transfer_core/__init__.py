"""
Cascading data transfer engine.

Exports a collection together with its related collections into one
portable archive and imports such archives back as a single transaction.
"""

__version__ = "0.1.0"
