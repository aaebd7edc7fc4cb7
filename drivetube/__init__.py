"""
drivetube – Google Drive → YouTube automation
==============================================
Scans a Drive folder for videos, writes titles/descriptions/tags with AI,
uploads them on a daily schedule and keeps restricted uploads private.
"""

__version__ = "1.0.0"
