"""
sitedeploy - local deployment of remote-hosted Drupal projects.
"""

from sitedeploy.cli import __version__, main

__all__ = ["__version__", "main"]
