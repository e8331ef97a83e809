"""
Archetype discovery for draft decks: clustering of deck compositions.
"""

__version__ = "0.1.0"
