"""
Arguments are the values a type needs in addition to its bytes: an element
count for an array, the base offset of a pointer, the values a record imports.

A type declares them as a tuple of Arg; a field can pass them in three
equivalent ways that all end up as the same Arguments instance

 1. positional: Field(Header, args=(1, 2)), matched against the declaration order
 2. named: Field(Header, args={'version': 1}), validated and completed with the defaults
 3. raw: Field(Header, args_raw=lambda this: this.args), forwarded as it is
"""
import copy
from typing import Tuple

from .exceptions import SchemaError


class _Required:

    def __repr__(self):
        return 'REQUIRED'


REQUIRED = _Required()


class Arg(object):
    """Declaration of an argument, optionally with a default value."""

    def __init__(self, name, default=REQUIRED):
        self.name = name
        self.default = default

    def __repr__(self):
        if self.required:
            return f'<{self.__class__.__name__}({self.name})>'

        return f'<{self.__class__.__name__}({self.name}={self.default!r})>'

    @property
    def required(self):
        return self.default is REQUIRED

    def get_default(self):
        return copy.copy(self.default)


def as_arg(value) -> Arg:
    return value if isinstance(value, Arg) else Arg(value)


class Arguments(dict):
    '''The resolved arguments, accessible also as attributes.'''

    def __getattr__(self, key):
        try:
            return self[key]
        except KeyError:
            raise AttributeError(key)

    def __setattr__(self, key, value):
        self[key] = value


def build_positional(declared: Tuple[Arg, ...], values, owner='type') -> Arguments:
    if len(values) > len(declared):
        raise SchemaError(f'{owner} takes {len(declared)} arguments but {len(values)} were given')

    named = {arg.name: value for arg, value in zip(declared, values)}

    return build_named(declared, named, owner=owner)


def build_named(declared: Tuple[Arg, ...], values, owner='type') -> Arguments:
    known = {arg.name for arg in declared}
    unknown = set(values) - known
    if unknown:
        raise SchemaError(f'{owner} has no argument named {", ".join(sorted(unknown))}')

    arguments = Arguments()
    for arg in declared:
        if arg.name in values:
            arguments[arg.name] = values[arg.name]
        elif arg.required:
            raise SchemaError(f'missing required argument \'{arg.name}\' for {owner}')
        else:
            arguments[arg.name] = arg.get_default()

    return arguments


def build_arguments(declared, positional=None, named=None, raw=None, owner='type') -> Arguments:
    '''Return the arguments for a type from one of the passing conventions.

    Without any argument passed the defaults are used, failing if some of
    them is required.'''
    if raw is not None:
        return raw

    if positional is not None:
        return build_positional(declared, positional, owner=owner)

    return build_named(declared, named or {}, owner=owner)
