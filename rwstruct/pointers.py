'''
# Offset indirection

A pointer stores a raw offset, read inline during the pass over the fields of
the record; the value it points to is read later, seeking to

    base + raw offset

where the base is the position the enclosing record started at, unless the
"offset" (or "offset_after") directive gives an absolute one.

By default the resolution is deferred until the record has read all of its
fields, so a pointer can precede the data it refers to without forcing
non-sequential reads in the middle of the record; with "deref_now" it happens
right after the offset is read, because a later field needs the value.

    class Header(Record):
        name = Field(FilePtr(u32, NullString()))
        size = Field(FilePtr(u16, u32), deref_now=True)
        data = Field(Bytes(), count=lambda this: this.size.value)
'''
import logging

from .args import Arg
from .exceptions import UnresolvedPointerError
from .types import BinType, as_bintype


logger = logging.getLogger(__name__)


class Pointer(object):
    '''The value of a FilePtr field: accessing "value" before the pointer has
    been resolved is an error, not a silent default.'''

    def __init__(self, ptr, value=None, resolved=False):
        self.ptr = ptr
        self._value = value
        self.resolved = resolved

    def __repr__(self):
        if not self.resolved:
            return f'<{self.__class__.__name__}(0x{self.ptr:x}, unresolved)>'

        return f'<{self.__class__.__name__}(0x{self.ptr:x}, {self._value!r})>'

    def __eq__(self, other):
        if not isinstance(other, Pointer):
            return NotImplemented

        return (self.ptr, self.resolved, self._value) == (other.ptr, other.resolved, other._value)

    @property
    def value(self):
        if not self.resolved:
            raise UnresolvedPointerError(f'pointer to 0x{self.ptr:x} has not been resolved yet')

        return self._value

    @value.setter
    def value(self, value):
        self._value = value
        self.resolved = True


class FilePtr(BinType):
    '''Pointer with the raw offset of type "ptr_type" and pointing to a value of type "inner".

    The arguments are "offset", the absolute base (the start of the enclosing
    record if not given) and "inner", the arguments for the pointed value.'''

    deferred = True

    def __init__(self, ptr_type, inner):
        super().__init__()
        self.ptr_type = as_bintype(ptr_type)
        self.inner = as_bintype(inner)
        self.arguments = (Arg('offset', None), Arg('inner', None))

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.ptr_type!r}, {self.inner!r})>'

    def default(self):
        return Pointer(0)

    def read(self, stream, endian, args):
        return Pointer(self.ptr_type.read(stream, endian, self.ptr_type.default_arguments()))

    def write(self, value, stream, endian, args):
        '''Only the raw offset is written: the pointed data must be laid out by the caller.'''
        ptr = value.ptr if isinstance(value, Pointer) else value
        self.ptr_type.write(ptr, stream, endian, self.ptr_type.default_arguments())

    def after_parse(self, value, stream, endian, args, base):
        offset = args['offset']
        base = offset if offset is not None else base

        inner = args['inner']
        inner = inner if inner is not None else self.inner.default_arguments()

        stream.save()
        try:
            stream.seek(base + value.ptr)
            logger.debug('resolving pointer 0x%x from base 0x%x', value.ptr, base)
            value.value = self.inner.read(stream, endian, inner)
            self.inner.after_parse(value.value, stream, endian, inner, base)
        finally:
            stream.restore()


class PendingPointer(object):
    '''The continuation created for a field whose type needs a second pass: it's
    invoked exactly once with the base position, either right away or when the
    record has finished its primary pass.'''

    def __init__(self, field, bintype, value, endian, args):
        self.field = field
        self.bintype = bintype
        self.value = value
        self.endian = endian
        self.args = args
        self.consumed = False

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.field.name}, consumed={self.consumed})>'

    def __call__(self, stream, base):
        if self.consumed:
            raise RuntimeError(f'the pointer for field \'{self.field.name}\' has been already resolved')

        self.consumed = True
        self.bintype.after_parse(self.value, stream, self.endian, self.args, base)
