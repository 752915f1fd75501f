# Error taxonomy for the report pipeline
# File access problems use the built-in OSError family (FileNotFoundError etc.)


class ParseError(ValueError):
    """Raised when a table file or formula cannot be parsed."""
    pass


class TypeCoercionError(ParseError):
    """Raised when a column cannot be coerced to its declared type."""
    pass


class DegenerateFoldError(ValueError):
    """Raised when a partition has too few examples of a class to fit or score."""
    pass


class DimensionMismatchError(ValueError):
    """Raised when predicted and true vectors differ in length."""
    pass
