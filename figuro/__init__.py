"""
FiguroAI - learn idioms and words with AI explanations and audio.
"""

__version__ = "1.0.0"
