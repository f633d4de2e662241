"""
Data-access helpers shared by routes, services and CLI commands.  ``base``
wraps the ORM with logging and auditing; each ``*_utils`` module adds the
queries one model needs so business code can avoid repeating boilerplate.
"""

from . import base  # re-export to make base helpers discoverable.
