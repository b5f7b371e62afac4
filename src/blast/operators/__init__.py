"""Operators realizing the task types blast can run itself."""
