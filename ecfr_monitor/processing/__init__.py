"""
Full-text processing module for eCFR documents.
"""

from .word_counter import DocumentFetcher, count_words, plain_text

__all__ = ["DocumentFetcher", "count_words", "plain_text"]
