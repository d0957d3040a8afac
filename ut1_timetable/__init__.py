"""
Scrape the UT1 Capitole weekly planning grid and export it as a calendar.
"""
__version__ = "0.1.0"
