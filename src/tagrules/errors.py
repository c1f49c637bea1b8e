"""Exceptions raised by tagrules.

Every fallible operation raises a subclass of :class:`RulesError` carrying a
message suitable for showing to a user.
"""

from __future__ import annotations


class RulesError(Exception):
    """Base class for all tagrules errors."""


class TagParseError(RulesError):
    """Raised for a malformed tag source line or tag write argument."""


class RuleParseError(RulesError):
    """Raised for malformed rule syntax or a rejected rule write."""


class RuleValidationError(RuleParseError):
    """Raised when a rule references a tag or value outside the vocabulary."""


class ObjectParseError(RulesError):
    """Raised when an object source file has an unexpected shape."""


class FileError(RulesError):
    """Raised when reading, writing, or globbing a source file fails."""
