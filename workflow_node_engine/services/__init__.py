"""Collaborators the processors delegate to."""
