"""Chais Pas - let fate decide, then look back at what it chose."""
