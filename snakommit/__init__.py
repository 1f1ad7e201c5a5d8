"""
Snakommit - interactive conventional commit CLI.

Guides a developer through staging files and composing a conventional
commit message, then records the commit with git.
"""

__version__ = "1.0.0"
