from .deck_preprocessor import DeckMatrix, DeckPreprocessor

__all__ = ["DeckMatrix", "DeckPreprocessor"]
