"""Load git commit, tag and author history into a relational store."""

__version__ = "0.1.0"
