"""
Live Interviewer: realtime simulated technical interview session engine.
"""

__version__ = "0.1.0"
