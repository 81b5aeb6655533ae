"""
The types a field can contain.

Every type implements the same capability interface, BinType: read() and
write() take the stream, the resolved byte order and the resolved arguments
(see rwstruct.args), so that a type, a nested record or a custom function
passed with parse_with can be used interchangeably by the engine.
"""
import copy
import logging
import struct
from collections import namedtuple
from typing import Tuple

import bitstring

from .args import Arg, build_arguments
from .exceptions import RwstructException, IoException, SchemaError


class BinType(object):
    """Base class to subclass from"""

    arguments: Tuple[Arg, ...] = ()
    # True if the values of this type need a second pass after the record
    deferred = False

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def __repr__(self):
        return f'<{self.__class__.__name__}>'

    def read(self, stream, endian, args):
        raise NotImplementedError(f'method {self.__class__.__name__}.read() not implemented')

    def write(self, value, stream, endian, args):
        raise NotImplementedError(f'method {self.__class__.__name__}.write() not implemented')

    def default(self):
        return None

    def after_parse(self, value, stream, endian, args, base):
        '''Second pass, called once the enclosing record has read all its fields.'''
        pass

    def default_arguments(self):
        return build_arguments(self.arguments, owner=repr(self))


class StructType(BinType):
    """
    Simplest of the types: mimic the behaviour of the struct module packing/unpacking
    integers to/from bytes.
    """

    def __init__(self, format, default=0):
        super().__init__()
        self.format = format
        self._default = default
        self.size = struct.calcsize(format)

    def __repr__(self):
        return '<%s(%s)>' % (self.__class__.__name__, self.format)

    def get_format(self, endian):
        return '%s%s' % (endian.struct_prefix, self.format)

    def default(self):
        return self._default

    def read(self, stream, endian, args):
        raw = stream.read_exact(self.size)
        return struct.unpack(self.get_format(endian), raw)[0]

    def write(self, value, stream, endian, args):
        stream.write(struct.pack(self.get_format(endian), value))


u8   = StructType('B')
u16  = StructType('H')
u32  = StructType('I')
u64  = StructType('Q')
i8   = StructType('b')
i16  = StructType('h')
i32  = StructType('i')
i64  = StructType('q')
f32  = StructType('f', default=0.0)
f64  = StructType('d', default=0.0)
bool_ = StructType('?', default=False)


class Bytes(BinType):
    """Represent a contiguous chunk of bytes, the length can be fixed or
    passed as the argument "count"."""

    def __init__(self, count=None):
        super().__init__()
        self.arguments = (Arg('count', count),)

    def default(self):
        return b''

    def read(self, stream, endian, args):
        count = args['count']
        if count is None:
            raise SchemaError(f'{self!r} needs a count')

        return stream.read_exact(count)

    def write(self, value, stream, endian, args):
        stream.write(value)


class NullString(BinType):
    """Bytes terminated by a null byte, the terminator is not part of the value."""

    terminator = b'\x00'

    def default(self):
        return b''

    def read(self, stream, endian, args):
        data = b''
        while (b := stream.read(len(self.terminator))) != self.terminator:
            if len(b) != len(self.terminator):
                raise IoException('unexpected end of data looking for the string terminator', eof=True)
            data += b

        return data

    def write(self, value, stream, endian, args):
        stream.write(value + self.terminator)


class NullWideString(NullString):
    """UTF-16 string terminated by a null code unit."""

    terminator = b'\x00\x00'

    def default(self):
        return ''

    def get_encoding(self, endian):
        return 'utf-16-le' if endian.byteorder == 'little' else 'utf-16-be'

    def read(self, stream, endian, args):
        return super().read(stream, endian, args).decode(self.get_encoding(endian))

    def write(self, value, stream, endian, args):
        super().write(value.encode(self.get_encoding(endian)), stream, endian, args)


class Array(BinType):
    '''Un/Pack an array of elements.

    You can indicate an explicit number of elements via the argument named "count"
    or you can indicate with a callable returning True which element is the terminator
    for the list via the parameter named "until" (the terminator is kept) or
    "until_exclusive" (the terminator is discarded); with "until_eof" the elements
    are read until the end of the stream.

    The arguments for the elements can be passed via the argument named "inner".
    '''

    def __init__(self, element, count=None, until=None, until_exclusive=None, until_eof=False):
        super().__init__()
        self.element = as_bintype(element)
        self.arguments = (Arg('count', count), Arg('inner', None))
        self._until = until
        self._until_exclusive = until_exclusive
        self._until_eof = until_eof
        self.deferred = self.element.deferred

        if sum(map(bool, (until, until_exclusive, until_eof))) > 1:
            raise SchemaError('only one of until, until_exclusive and until_eof can be used')

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.element!r})>'

    def default(self):
        return []

    def get_inner_arguments(self, args):
        inner = args['inner']
        return inner if inner is not None else self.element.default_arguments()

    def read(self, stream, endian, args):
        inner = self.get_inner_arguments(args)

        if self._until_eof:
            return self._read_until_eof(stream, endian, inner)

        if self._until or self._until_exclusive:
            return self._read_until(stream, endian, inner)

        count = args['count']
        if count is None:
            raise SchemaError(f'{self!r} needs a count or a terminating condition')

        self.logger.debug('reading %d elements of %r', count, self.element)

        return [self.element.read(stream, endian, copy.copy(inner)) for _ in range(count)]

    def _read_until(self, stream, endian, inner):
        values = []
        while True:
            value = self.element.read(stream, endian, copy.copy(inner))
            if self._until_exclusive and self._until_exclusive(value):
                break

            values.append(value)

            if self._until and self._until(value):
                break

        return values

    def _read_until_eof(self, stream, endian, inner):
        values = []
        while True:
            pos = stream.tell()
            try:
                values.append(self.element.read(stream, endian, copy.copy(inner)))
            except RwstructException as e:
                if not e.is_eof():
                    raise
                stream.seek(pos)
                break

        return values

    def write(self, value, stream, endian, args):
        inner = self.get_inner_arguments(args)
        for element in value:
            self.element.write(element, stream, endian, copy.copy(inner))

    def after_parse(self, value, stream, endian, args, base):
        inner = self.get_inner_arguments(args)
        for element in value:
            self.element.after_parse(element, stream, endian, inner, base)


PosValue = namedtuple('PosValue', ['val', 'pos'])


class Positioned(BinType):
    """A wrapper that stores the position the value was read at alongside the value.
    When writing the position is ignored."""

    def __init__(self, inner):
        super().__init__()
        self.inner = as_bintype(inner)
        self.arguments = self.inner.arguments
        self.deferred = self.inner.deferred

    def default(self):
        return PosValue(self.inner.default(), 0)

    def read(self, stream, endian, args):
        pos = stream.tell()
        return PosValue(self.inner.read(stream, endian, args), pos)

    def write(self, value, stream, endian, args):
        self.inner.write(value.val, stream, endian, args)

    def after_parse(self, value, stream, endian, args, base):
        self.inner.after_parse(value.val, stream, endian, args, base)


class BitFields(BinType):
    """Packed sub-byte values, described with bitstring tokens like

        BitFields('uint:4', 'uint:3', 'bool')

    the total size must be a multiple of 8 bits; the value is a tuple."""

    def __init__(self, *tokens):
        super().__init__()
        self.tokens = tokens
        self.format = ', '.join(tokens)
        self.bits = sum(self._get_token_length(_) for _ in tokens)

        if self.bits % 8:
            raise SchemaError(f'{self!r} is {self.bits} bits long, not a multiple of 8')

        self.size = self.bits // 8

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.format})>'

    @staticmethod
    def _get_token_length(token):
        if ':' in token:
            return int(token.split(':')[1])

        if token == 'bool':
            return 1

        raise SchemaError(f'the token \'{token}\' must indicate its length')

    def default(self):
        return tuple(False if _ == 'bool' else 0 for _ in self.tokens)

    def read(self, stream, endian, args):
        raw = stream.read_exact(self.size)
        return tuple(bitstring.Bits(raw).unpack(self.format))

    def write(self, value, stream, endian, args):
        stream.write(bitstring.pack(self.format, *value).tobytes())


class ClassType(BinType):
    """Adapter for the classes implementing the capability interface by themselves
    via the classmethods read_options() and write_options(), like Record and Union."""

    def __init__(self, cls):
        super().__init__()
        self.cls = cls

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.cls.__name__})>'

    @property
    def arguments(self):
        get_arguments = getattr(self.cls, 'get_arguments', None)
        return get_arguments() if get_arguments else ()

    def default(self):
        default_value = getattr(self.cls, 'default_value', None)
        return default_value() if default_value else None

    def default_arguments(self):
        return build_arguments(self.arguments, owner=self.cls.__name__)

    def read(self, stream, endian, args):
        return self.cls.read_options(stream, endian, args)

    def write(self, value, stream, endian, args):
        self.cls.write_options(value, stream, endian, args)


def as_bintype(obj) -> BinType:
    if isinstance(obj, BinType):
        return obj

    if isinstance(obj, type) and hasattr(obj, 'read_options'):
        return ClassType(obj)

    raise SchemaError(f'\'{obj!r}\' cannot be used as a type')
