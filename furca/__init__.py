"""Furca keeps GitHub forks in step with their upstream repositories.

The package discovers the authenticated user's forks, checks how far each one
lags behind its parent, and asks GitHub to merge upstream changes into the
ones that are behind.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
