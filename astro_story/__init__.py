"""Astro Story: AI-generated branching story sessions presented as a chat."""
