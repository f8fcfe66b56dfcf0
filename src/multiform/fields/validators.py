"""Validators run by fields after a value has been cast.

A validator is any callable taking the cast value and raising
`ValidationError` with a message when the value is unacceptable. Bounds
set to `None` are not checked.
"""

import re

from multiform.exceptions import ValidationError


class LengthValidator:
    """Check the number of characters in a value"""

    def __init__(self, min_length=None, max_length=None):
        self.min_length = min_length
        self.max_length = max_length

    def __call__(self, value):
        if self.min_length is not None and len(value) < self.min_length:
            raise ValidationError(f"must be at least {self.min_length} characters long")
        if self.max_length is not None and len(value) > self.max_length:
            raise ValidationError(f"must be at most {self.max_length} characters long")


class RangeValidator:
    """Check that a number lies within bounds, both inclusive"""

    def __init__(self, min_value=None, max_value=None):
        self.min_value = min_value
        self.max_value = max_value

    def __call__(self, value):
        if self.min_value is not None and value < self.min_value:
            raise ValidationError(f"must be at least {self.min_value}")
        if self.max_value is not None and value > self.max_value:
            raise ValidationError(f"must be at most {self.max_value}")


class PatternValidator:
    def __init__(self, pattern, message="has an invalid format", flags=0):
        self.pattern = re.compile(pattern, flags)
        self.message = message

    def __call__(self, value):
        if self.pattern.search(str(value)) is None:
            raise ValidationError(self.message)
