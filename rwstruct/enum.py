from enum import Enum, auto


class FieldMode(Enum):
    '''How the value of a field is obtained when reading'''
    NORMAL   = auto()  # the type reads it from the stream
    CALC     = auto()  # evaluated from an expression, nothing is read or written
    DEFAULT  = auto()  # the default value, nothing is read but it's written
    IGNORE   = auto()  # the default value, nothing is read or written
    FUNCTION = auto()  # read/written by custom functions


class ErrorMode(Enum):
    '''What a union reports when none of its variants matched'''
    AGGREGATE = auto()  # the error of every variant
    DISCARD   = auto()  # a single generic error
