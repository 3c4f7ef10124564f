"""Declarative request validation.

Each endpoint describes its input as a tuple of :class:`Field` rules;
:func:`validate` walks the table and either returns the cleaned values or
raises :class:`errors.ValidationError` listing every violation.
"""
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional, Sequence

from email_validator import EmailNotValidError, validate_email

from errors import ValidationError
from models import SEMESTERS

DOMAIN_PATTERN = re.compile(r'^[a-z0-9.-]+\.[a-z]{2,}$')

_MISSING = object()
_TRUTHY = ('true', '1')
_FALSY = ('false', '0')


@dataclass(frozen=True)
class Field:
    name: str
    message: str
    required: bool = True
    aliases: Sequence[str] = ()
    trim: bool = True
    lowercase: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    choices: Optional[Sequence[str]] = None
    pattern: Optional[re.Pattern] = None
    email: bool = False
    integer_id: bool = False
    boolean: bool = False
    required_message: Optional[str] = None

    def lookup(self, data):
        for key in (self.name, *self.aliases):
            if key in data:
                return data[key]
        return _MISSING

    def clean(self, value):
        """Return the cleaned value or raise ValueError with the rule message."""
        if not isinstance(value, str):
            if self.integer_id and isinstance(value, int) and not isinstance(value, bool):
                value = str(value)
            elif self.boolean and isinstance(value, bool):
                return value
            else:
                raise ValueError(self.message)
        if self.trim:
            value = value.strip()
        if self.lowercase:
            value = value.lower()
        if self.min_length is not None and len(value) < self.min_length:
            raise ValueError(self.message)
        if self.max_length is not None and len(value) > self.max_length:
            raise ValueError(self.message)
        if self.choices is not None and value not in self.choices:
            raise ValueError(self.message)
        if self.pattern is not None and not self.pattern.match(value):
            raise ValueError(self.message)
        if self.email:
            try:
                value = validate_email(value, check_deliverability=False).normalized.lower()
            except EmailNotValidError:
                raise ValueError(self.message) from None
        if self.integer_id:
            if not (value.isascii() and value.isdigit()) or int(value) < 1:
                raise ValueError(self.message)
            return int(value)
        if self.boolean:
            if value not in _TRUTHY + _FALSY:
                raise ValueError(self.message)
            return value in _TRUTHY
        return value


def _is_blank(value):
    return value is _MISSING or value is None or (isinstance(value, str) and not value.strip())


def validate(data, rules):
    data = data if isinstance(data, Mapping) else {}
    cleaned = {}
    violations = []
    for rule in rules:
        raw = rule.lookup(data)
        if _is_blank(raw):
            if rule.required:
                violations.append({'field': rule.name, 'message': rule.required_message or rule.message})
            else:
                cleaned[rule.name] = None
            continue
        try:
            cleaned[rule.name] = rule.clean(raw)
        except ValueError as exc:
            violations.append({'field': rule.name, 'message': str(exc)})
    if violations:
        raise ValidationError('Validation error', violations)
    return cleaned


REGISTER_RULES = (
    Field('name', 'Name must be between 2 and 100 characters', min_length=2, max_length=100),
    Field('email', 'Please provide a valid email', email=True, max_length=254),
    Field('password', 'Password must be at least 6 characters', trim=False, min_length=6),
    Field('institution_id', 'Invalid institution ID', aliases=('institutionId',), integer_id=True,
          required_message='Institution selection is required'),
)

LOGIN_RULES = (
    Field('email', 'Please provide a valid email', email=True),
    Field('password', 'Password is required', trim=False),
)

INSTITUTION_RULES = (
    Field('name', 'Institution name must be between 2 and 200 characters', min_length=2, max_length=200),
    Field('domain', 'Domain must be between 3 and 100 characters and look like cec.ac.in', lowercase=True,
          min_length=3, max_length=100, pattern=DOMAIN_PATTERN),
)

UPLOAD_RULES = (
    Field('semester', 'Semester must be between 1 and 8', choices=SEMESTERS,
          required_message='Semester is required'),
    Field('course', 'Course name cannot exceed 100 characters', max_length=100,
          required_message='Course name is required'),
    Field('description', 'Description cannot exceed 1000 characters', required=False, max_length=1000),
)

LIST_RULES = (
    Field('semester', 'Invalid semester value', required=False, choices=SEMESTERS),
    Field('course', 'Invalid course value', required=False),
    Field('search_term', 'Invalid search term', required=False),
    Field('myuploads', 'myuploads must be true, false, 1 or 0', required=False, lowercase=True, boolean=True),
)

FILE_ID_RULES = (
    Field('id', 'Invalid file ID', integer_id=True),
)
