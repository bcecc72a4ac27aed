"""readyaimshoot - personalised assessment versions for Canvas.

Ready samples per-version datasets from a master CSV, Aim derives
question/answer pairs from each version, Shoot publishes quizzes,
questions and per-student overrides through the Canvas REST API.
"""

__all__ = ["__version__"]

__version__ = "0.2.0"
