"""
A Field is the declaration of a member of a record together with all the
directives that tell how to read and write it.

The execution order for reading is fixed:

  1. byte order (possibly depending on earlier fields)
  2. seek_before
  3. pad_before, then align_before
  4. the baseline for pad_size_to
  5. magic
  6. cond: if false the alternate value is used and nothing is read
  7. the value itself, depending on the mode (see rwstruct.enum.FieldMode)
  8. try_: a failure at 7 rewinds and gives back the default
  9. map/try_map
 10. asserts
 11. pad_size_to
 12. pad_after, then align_after
 13. restore_position

writing follows the same order, writing zeros where reading skips.
"""
import copy
import logging
import os
import sys

from .args import Arguments, build_arguments
from .enum import FieldMode
from .exceptions import (
    RwstructException,
    MagicException,
    AssertionException,
    CustomException,
    BacktraceFrame,
    CustomFrame,
    SchemaError,
)
from .meta import resolve_endianess
from .pointers import PendingPointer
from .properties import evaluate
from .types import as_bintype


logger = logging.getLogger(__name__)


def _get_declaration_site():
    frame = sys._getframe(1)
    while frame is not None and frame.f_code.co_filename == __file__:
        frame = frame.f_back

    if frame is None:
        return None, None

    return frame.f_code.co_filename, frame.f_lineno


def read_magic_value(magic, stream, endian):
    '''Read a value of the same kind of the magic: a bytes instance or a couple (type, value).'''
    if isinstance(magic, bytes):
        return stream.read_exact(len(magic)), magic

    bintype, expected = magic
    bintype = as_bintype(bintype)

    return bintype.read(stream, endian, bintype.default_arguments()), expected


def read_magic(magic, stream, endian):
    pos = stream.tell()
    found, expected = read_magic_value(magic, stream, endian)

    if found != expected:
        logger.warning('the magic doesn\'t correspond: expected %r, found %r', expected, found)
        raise MagicException(pos, found)

    return found


def write_magic(magic, stream, endian):
    if isinstance(magic, bytes):
        stream.write(magic)
    else:
        bintype, value = magic
        bintype = as_bintype(bintype)
        bintype.write(value, stream, endian, bintype.default_arguments())


def magic_kind(magic):
    '''Magic values of the same kind can be compared after a single read.'''
    if magic is None:
        return None

    if isinstance(magic, bytes):
        return (bytes, len(magic))

    return as_bintype(magic[0])


class Assert(object):
    '''An assertion: if the condition evaluates to false an AssertionException
    is raised with the message, or a CustomException if "error" is an expression
    returning something that is not a string.'''

    def __init__(self, condition, error=None):
        self.condition = condition
        self.error = error

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.error!r})>'

    def check(self, context, pos):
        if evaluate(self.condition, context):
            return

        if self.error is None:
            raise AssertionException(pos, 'assertion failed')

        error = evaluate(self.error, context)

        if isinstance(error, str):
            raise AssertionException(pos, error)

        raise CustomException(pos, error)


def check_assertions(assertions, context, pos):
    for assertion in assertions:
        if not isinstance(assertion, Assert):
            assertion = Assert(assertion)
        assertion.check(context, pos)


class Field(object):
    """Declaration of a member of a record with its directives"""

    def __init__(self, type=None, *, name=None, default=None, endian=None, magic=None,
                 args=None, args_raw=None, count=None, offset=None, offset_after=None, deref_now=False,
                 mode=None, calc=None, ignore=False, parse_with=None, write_with=None,
                 cond=None, alternate=None, try_=False,
                 map=None, try_map=None, map_write=None, try_map_write=None, write_calc=None,
                 pad_before=None, align_before=None, pad_after=None, align_after=None,
                 seek_before=None, pad_size_to=None, restore_position=False,
                 asserts=(), temp=False, err_context=None, debug=False):
        self.logger = logging.getLogger(__name__)
        self.name = name
        self.bintype = as_bintype(type) if type is not None else None
        self.default = default
        self.endian = endian
        self.magic = magic
        self.args = args
        self.args_raw = args_raw
        self.count = count
        self.offset = offset
        self.offset_after = offset_after
        self.deref_now = deref_now
        self.calc = calc
        self.parse_with = parse_with
        self.write_with = write_with
        self.cond = cond
        self.alternate = alternate
        self.try_ = try_
        self.map = map
        self.try_map = try_map
        self.map_write = map_write
        self.try_map_write = try_map_write
        self.write_calc = write_calc
        self.pad_before = pad_before
        self.align_before = align_before
        self.pad_after = pad_after
        self.align_after = align_after
        self.seek_before = seek_before
        self.pad_size_to = pad_size_to
        self.restore_position = restore_position
        self.asserts = list(asserts)
        self.temp = temp
        self.err_context = err_context
        self.debug = debug
        self.file, self.line = _get_declaration_site()

        self.mode = self._get_mode(mode, calc, ignore, parse_with)

        self.validate()

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.name}, {self.bintype!r})>'

    @staticmethod
    def _get_mode(mode, calc, ignore, parse_with):
        modes = [_ for _ in (
            mode,
            FieldMode.CALC if calc is not None else None,
            FieldMode.IGNORE if ignore else None,
            FieldMode.FUNCTION if parse_with is not None else None,
        ) if _ is not None]

        if len(set(modes)) > 1:
            raise SchemaError(f'conflicting read modes {", ".join(_.name for _ in modes)}')

        return modes[0] if modes else FieldMode.NORMAL

    def validate(self):
        if self.mode not in (FieldMode.NORMAL, FieldMode.FUNCTION):
            if self.cond is not None or self.try_:
                raise SchemaError(f'read mode {self.mode.name} cannot be used with cond or try_')

        if self.mode == FieldMode.NORMAL and self.bintype is None:
            raise SchemaError('a field needs a type to be read')

        if self.mode == FieldMode.FUNCTION and self.write_with is None and self.bintype is None:
            raise SchemaError('a field read with parse_with needs write_with or a type to be written')

        if self.mode == FieldMode.DEFAULT and self.bintype is None:
            raise SchemaError('a field in DEFAULT mode needs a type to be written')

        if self.count is not None or self.offset is not None:
            if self.args_raw is not None or isinstance(self.args, (tuple, list)):
                raise SchemaError('count and offset cannot be used with positional or raw arguments')

        if self.args_raw is not None and self.args is not None:
            raise SchemaError('args and args_raw are mutually exclusive')

        if self.offset_after is not None:
            if self.deref_now:
                raise SchemaError('offset_after cannot be used with deref_now since it\'s always deferred')
            if self.offset is not None:
                raise SchemaError('offset and offset_after are mutually exclusive')

        if (self.deref_now or self.offset_after is not None) and not (self.bintype and self.bintype.deferred):
            raise SchemaError('deref_now and offset_after can be used only with pointers')

        if self.offset_after is not None and 'offset' not in [_.name for _ in self.bintype.arguments]:
            raise SchemaError(f'offset_after needs a type with the argument "offset", not {self.bintype!r}')

        if self.map is not None and self.try_map is not None:
            raise SchemaError('map and try_map are mutually exclusive')

        if self.map_write is not None and self.try_map_write is not None:
            raise SchemaError('map_write and try_map_write are mutually exclusive')

    def contribute_to_record(self, cls, name):
        field = copy.copy(self)
        field.name = name
        cls._meta.fields.append(field)

    def get_default(self):
        if self.default is not None:
            return copy.deepcopy(self.default)

        return self.bintype.default() if self.bintype else None

    def get_endian(self, context, endian):
        return resolve_endianess(evaluate(self.endian, context), endian)

    def get_arguments(self, context, writing=False) -> Arguments:
        '''The arguments for the type: "count" only describes how much to read so
        it's not evaluated when writing, the value itself knows its length.'''
        if self.args_raw is not None:
            return evaluate(self.args_raw, context)

        positional = None
        named = {}
        if isinstance(self.args, (tuple, list)):
            positional = [evaluate(_, context) for _ in self.args]
        elif self.args is not None:
            named = {key: evaluate(value, context) for key, value in self.args.items()}

        if self.count is not None and not writing:
            named['count'] = evaluate(self.count, context)
        if self.offset is not None:
            named['offset'] = evaluate(self.offset, context)

        if self.bintype is None:
            return tuple(positional) if positional is not None else Arguments(named)

        return build_arguments(self.bintype.arguments, positional=positional, named=named,
                               owner=f'field \'{self.name}\'')

    def get_frame(self, context, record_name, action='parsing'):
        '''The backtrace frame to attach to an error raised by this field.'''
        if callable(self.err_context):
            return CustomFrame(evaluate(self.err_context, context))

        message = self.err_context or f'While {action} field \'{self.name}\' in {record_name}'

        return BacktraceFrame(message, self.file, self.line)

    # padding and seeking, shared by reading and writing
    def _seek_before(self, stream, context):
        if self.seek_before is None:
            return

        position = evaluate(self.seek_before, context)
        if isinstance(position, tuple):
            stream.seek(*position)
        else:
            stream.seek(position)

    def _pad(self, stream, context, pad, align, writing):
        if pad is not None:
            self._skip(stream, evaluate(pad, context), writing)

        if align is not None:
            alignment = evaluate(align, context)
            remainder = stream.tell() % alignment
            if remainder:
                self._skip(stream, alignment - remainder, writing)

    @staticmethod
    def _skip(stream, size, writing):
        if size <= 0:
            return

        if writing:
            stream.write(b'\x00' * size)
        else:
            stream.seek(size, os.SEEK_CUR)

    def _pad_size_to(self, stream, context, baseline, writing):
        if self.pad_size_to is None:
            return

        pad = evaluate(self.pad_size_to, context)
        size = stream.tell() - baseline
        if size < pad:
            self._skip(stream, pad - size, writing)

    def _debug(self, pos, value):
        if self.debug:
            self.logger.info('[%s:%s | offset 0x%x] %s = %r', self.file, self.line, pos, self.name, value)

    # reading
    def _read_value(self, stream, context, endian):
        if self.mode == FieldMode.CALC:
            return evaluate(self.calc, context), None

        if self.mode in (FieldMode.DEFAULT, FieldMode.IGNORE):
            return self.get_default(), None

        args = self.get_arguments(context)

        if self.mode == FieldMode.FUNCTION:
            value = self.parse_with(stream, endian, args)
        else:
            value = self.bintype.read(stream, endian, args)

        pending = None
        if self.bintype is not None and self.bintype.deferred:
            pending = PendingPointer(self, self.bintype, value, endian, args)

        return value, pending

    def _apply_map(self, value, stream, map, try_map):
        if map is not None:
            return map(value)

        if try_map is not None:
            pos = stream.tell()
            try:
                return try_map(value)
            except Exception as e:
                raise CustomException(pos, e) from e

        return value

    def read(self, stream, context, endian):
        '''Return the value and, if it needs to be resolved when the record
        ends, the PendingPointer to call.'''
        endian = self.get_endian(context, endian)

        saved = stream.tell()

        self._seek_before(stream, context)
        self._pad(stream, context, self.pad_before, self.align_before, writing=False)

        baseline = stream.tell()

        if self.magic is not None:
            read_magic(self.magic, stream, endian)

        pos = stream.tell()
        pending = None

        if self.cond is not None and not evaluate(self.cond, context):
            self.logger.debug('condition for field \'%s\' is false', self.name)
            value = evaluate(self.alternate, context) if self.alternate is not None else self.get_default()
        else:
            try:
                value, pending = self._read_value(stream, context, endian)
            except RwstructException as e:
                if not self.try_:
                    raise
                self.logger.warning('failed to read field \'%s\', using the default value: %s', self.name, e)
                stream.seek(pos)
                value = self.get_default()

            if pending and self.deref_now:
                pending(stream, context.start)
                pending = None

            value = self._apply_map(value, stream, self.map, self.try_map)

        context[self.name] = value

        check_assertions(self.asserts, context, pos)

        self._pad_size_to(stream, context, baseline, writing=False)
        self._pad(stream, context, self.pad_after, self.align_after, writing=False)

        self._debug(pos, value)

        if self.restore_position:
            stream.seek(saved)

        return value, pending

    # writing
    def is_written(self):
        return self.mode not in (FieldMode.CALC, FieldMode.IGNORE)

    def write(self, value, stream, context, endian):
        endian = self.get_endian(context, endian)

        saved = stream.tell()

        self._seek_before(stream, context)
        self._pad(stream, context, self.pad_before, self.align_before, writing=True)

        baseline = stream.tell()

        if self.magic is not None:
            write_magic(self.magic, stream, endian)

        pos = stream.tell()

        if self.cond is None or evaluate(self.cond, context):
            check_assertions(self.asserts, context, pos)

            raw_value = self._apply_map(value, stream, self.map_write, self.try_map_write)
            args = self.get_arguments(context, writing=True)

            if self.write_with is not None:
                self.write_with(raw_value, stream, endian, args)
            else:
                self.bintype.write(raw_value, stream, endian, args)

        self._pad_size_to(stream, context, baseline, writing=True)
        self._pad(stream, context, self.pad_after, self.align_after, writing=True)

        self._debug(pos, value)

        if self.restore_position:
            stream.seek(saved)
