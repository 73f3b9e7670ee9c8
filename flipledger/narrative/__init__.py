"""Recommendation prompts and the Claude-backed recommender."""
