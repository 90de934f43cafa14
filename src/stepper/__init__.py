"""
Stepper API

Backend for the Stepper walking app: step tracking, friends, groups with
leaderboards, notifications, the activity feed and milestone achievements.
"""

__version__ = "1.0.0"
