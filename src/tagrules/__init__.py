"""tagrules - declarative tag-matching rule engine.

Tags (``*.tags``) define a closed vocabulary, rules (``*.rules``) are boolean
expressions over ``tag = value`` / ``tag ! value`` comparisons, and objects
are matched against every rule at once.

    >>> from tagrules import Vocabulary, compile_rule, evaluate
    >>> vocabulary = Vocabulary({"colour": ["red", "blue"], "size": ["small", "large"]})
    >>> clauses = compile_rule("- colour = red & size = large", vocabulary)
    >>> evaluate({"big-red": clauses}, {"colour": ["red"], "size": ["large"]})
    {'big-red'}
"""

from tagrules.engine import (
    Clause,
    ClauseSet,
    Comparison,
    Operator,
    RuleIndex,
    compile_rule,
    evaluate,
    evaluate_objects,
    normalize,
    parse_rule,
    validate,
    validate_rule,
)
from tagrules.errors import (
    FileError,
    ObjectParseError,
    RuleParseError,
    RulesError,
    RuleValidationError,
    TagParseError,
)
from tagrules.persistence import RuleSource, load_rules, write_object, write_rule, write_tag
from tagrules.session import RuleEngine
from tagrules.vocabulary import Vocabulary, load, load_tags

__version__ = "0.3.0"

__all__ = [
    "Clause",
    "ClauseSet",
    "Comparison",
    "FileError",
    "ObjectParseError",
    "Operator",
    "RuleEngine",
    "RuleIndex",
    "RuleParseError",
    "RuleSource",
    "RuleValidationError",
    "RulesError",
    "TagParseError",
    "Vocabulary",
    "__version__",
    "compile_rule",
    "evaluate",
    "evaluate_objects",
    "load",
    "load_rules",
    "load_tags",
    "normalize",
    "parse_rule",
    "validate",
    "validate_rule",
    "write_object",
    "write_rule",
    "write_tag",
]
