"""Collaborators at the system boundary: GitHub, the coding agent and prompts."""
