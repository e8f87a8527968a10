"""Command-line interface for symbridge."""
