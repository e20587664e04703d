"""
DeSci Chain Sync - event-driven chain-to-database sync layer
"""

__version__ = "1.0.0"
