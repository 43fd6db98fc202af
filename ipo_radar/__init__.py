"""
IPO Radar

Scrapes IPO listings from several independent HTML sources and reconciles
them into one canonical record set.
"""
__version__ = "1.0.0"
