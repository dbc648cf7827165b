"""
npmplus

Package intelligence for JavaScript projects: registry search, enriched package
metadata, vulnerability scanning and local package manager operations.
"""

__version__ = "1.0.0"
