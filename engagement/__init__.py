"""
Engagement core: streaks, risk, recovery, celebrations, points and achievements
"""

__version__ = "0.1.0"
