"""
Tagged unions

A Union is a set of records, its variants, tried in declaration order: the
first one that reads successfully is the value; a variant failing (usually
because of its magic or of an assertion) rewinds the stream and the next
one is tried.

    class Command(Union):
        class Meta:
            endian = Endianess.BIG_ENDIAN

        class Move(Record):
            class Meta:
                magic = b'\\x01'
            x = Field(u16)
            y = Field(u16)

        class Stop(Record):
            class Meta:
                magic = b'\\x02'

When none of them matches, with ErrorMode.AGGREGATE (the default) the
error contains the error of every variant, with ErrorMode.DISCARD only
the position.

For unions without data, UnitEnum maps the members of an enum.Enum either to
the value of an integer read from the stream (C-style) or to magic values.
"""
import logging

from .args import Arg, build_arguments
from .core import read_record, write_record, read, write
from .enum import ErrorMode
from .exceptions import (
    RwstructException,
    IoException,
    NoVariantMatchException,
    EnumErrorsException,
    BacktraceFrame,
    SchemaError,
    with_context,
)
from .fields import read_magic, write_magic, magic_kind, read_magic_value, check_assertions
from .meta import MetaRecord, RecordSpec, resolve_endianess
from .properties import Context
from .types import BinType, as_bintype


logger = logging.getLogger(__name__)

MISSING = object()


class UnionSpec(RecordSpec):

    OPTIONS = dict(RecordSpec.OPTIONS, error_mode=ErrorMode.AGGREGATE, variants=())

    def __init__(self, name, meta=None):
        super().__init__(name, meta)
        self.variants = list(self.variants)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.name}, variants={[_.__name__ for _ in self.variants]})>'


class MetaUnion(MetaRecord):

    spec_class = UnionSpec

    def add_to_class(cls, name, value):
        if isinstance(value, MetaRecord):
            cls.logger.debug('variant \'%s\' found for union \'%s\'' % (name, cls.__name__))
            cls._meta.variants.append(value)
            setattr(cls, name, value)
        elif hasattr(value, 'contribute_to_record'):
            raise SchemaError(f'union {cls.__name__} cannot have fields, only variants')
        else:
            setattr(cls, name, value)


class Union(metaclass=MetaUnion):
    """Base class for the unions, see the module documentation."""

    @classmethod
    def get_arguments(cls):
        return cls._meta.imports

    @classmethod
    def get_variant(cls, name):
        for variant in cls._meta.variants:
            if variant.__name__ == name:
                return variant

        raise KeyError(name)

    @classmethod
    def read_options(cls, stream, endian, args):
        spec = cls._meta
        endian = resolve_endianess(spec.endian, endian)
        # the variants are read with the arguments of the union
        args = args if args is not None else build_arguments(spec.imports, owner=spec.name)
        start = stream.tell()
        variant_errors = []

        try:
            if spec.magic is not None:
                read_magic(spec.magic, stream, endian)

            # the variants restart after the magic of the union
            pos = stream.tell()

            for variant in spec.variants:
                logger.debug('trying variant %s.%s at offset %d', spec.name, variant.__name__, pos)
                try:
                    return read_record(variant._meta, stream, endian, args, extra_asserts=spec.asserts)
                except RwstructException as e:
                    stream.seek(pos)
                    if spec.error_mode == ErrorMode.AGGREGATE:
                        variant_errors.append((variant.__name__, e))
                    else:
                        logger.debug('variant %s.%s failed: %s', spec.name, variant.__name__, e)
        except Exception:
            stream.seek(start)
            raise

        stream.seek(start)

        if spec.error_mode == ErrorMode.AGGREGATE:
            raise EnumErrorsException(start, variant_errors)

        raise NoVariantMatchException(start)

    @classmethod
    def write_options(cls, value, stream, endian, args):
        spec = cls._meta
        if type(value) not in spec.variants:
            raise ValueError(f'{value!r} is not a variant of {spec.name}')

        endian = resolve_endianess(spec.endian, endian)

        if spec.magic is not None:
            write_magic(spec.magic, stream, endian)

        write_record(type(value)._meta, value, stream, endian, args, extra_asserts=spec.asserts)

    @classmethod
    def unpack(cls, source, endian=None, args=None, **kwargs):
        return read(cls, source, endian=endian, args=args, **kwargs)

    @classmethod
    def pack(cls, value, stream=None, endian=None, args=None, **kwargs):
        return write(cls, value, sink=stream, endian=endian, args=args, **kwargs)


class UnitEnum(BinType):
    """Read a member of an enum.Enum without data.

    With "repr" the members are selected by their value, read as the given
    integer type (C-style):

        UnitEnum(Color, repr=u8)

    with "magic", a dictionary member -> magic, they are selected by the
    magic found in the stream; a member with magic None matches anything:

        UnitEnum(Command, magic={Command.GO: b'GO', Command.STOP: b'ST', Command.NOP: None})

    "pre_assert" is a dictionary member -> condition, evaluated against the
    imported arguments, that must hold for the member to be selected.
    """

    def __init__(self, enum, repr=None, magic=None, pre_assert=None, imports=()):
        super().__init__()
        if (repr is None) == (magic is None):
            raise SchemaError('UnitEnum needs exactly one between repr and magic')

        self.enum = enum
        self.repr = as_bintype(repr) if repr is not None else None
        self.magic = magic or {}
        self.pre_assert = {
            member: list(conditions) if isinstance(conditions, (list, tuple)) else [conditions]
            for member, conditions in (pre_assert or {}).items()
        }
        self.arguments = tuple(_ if isinstance(_, Arg) else Arg(_) for _ in imports)

        if self.magic and set(self.magic) != set(enum):
            raise SchemaError(f'every member of {enum.__name__} needs a magic (None for the default)')

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.enum.__name__})>'

    def default(self):
        return next(iter(self.enum))

    def _pre_assert(self, member, context):
        try:
            check_assertions(self.pre_assert.get(member, ()), context, context.start)
        except RwstructException:
            return False

        return True

    def read(self, stream, endian, args):
        pos = stream.tell()
        context = Context(stream, args, pos)

        try:
            if self.repr is not None:
                return self._read_repr(stream, endian, context)

            return self._read_magic(stream, endian, context)
        except Exception:
            stream.seek(pos)
            raise

    def _read_repr(self, stream, endian, context):
        pos = context.start
        value = self.repr.read(stream, endian, self.repr.default_arguments())

        for member in self.enum:
            if member.value == value and self._pre_assert(member, context):
                return member

        stream.seek(pos)
        raise with_context(NoVariantMatchException(pos), BacktraceFrame(f'Unexpected value for enum: {value!r}'))

    def _get_groups(self):
        '''Group the consecutive members with the same kind of magic, a member
        without magic joins the previous group.'''
        groups = []
        for member in self.enum:
            kind = magic_kind(self.magic[member])
            if groups and (kind is None or groups[-1][0] == kind):
                groups[-1][1].append(member)
            else:
                groups.append((kind, [member]))

        return groups

    def _read_magic(self, stream, endian, context):
        pos = context.start
        all_eof = True

        for kind, members in self._get_groups():
            found = MISSING
            if kind is not None:
                try:
                    found, _ = read_magic_value(self.magic[members[0]], stream, endian)
                except RwstructException as e:
                    all_eof &= e.is_eof()
                else:
                    all_eof = False

            for member in members:
                magic = self.magic[member]
                if magic is None:
                    # it matches without reading anything
                    matches = True
                    stream.seek(pos)
                else:
                    matches = found == (magic if isinstance(magic, bytes) else magic[1])

                if matches and self._pre_assert(member, context):
                    return member

            stream.seek(pos)

        if all_eof:
            raise IoException('unexpected end of data reading the magic', eof=True)

        raise NoVariantMatchException(pos)

    def write(self, value, stream, endian, args):
        if self.repr is not None:
            self.repr.write(value.value, stream, endian, self.repr.default_arguments())
        elif self.magic[value] is not None:
            write_magic(self.magic[value], stream, endian)
