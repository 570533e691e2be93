"""
Lurch - Slack assistant with rolling conversation memory and link expansion.
"""

__version__ = "0.3.0"
