"""
Core module: the Record and the engine that reads and writes it

A record is read in two passes:

 1. the primary pass reads every field in order (see rwstruct.fields);
    the fields containing pointers leave behind a PendingPointer
 2. the deferred pass resolves the pointers, then the record-level
    assertions are checked

If anything fails the stream is put back where the record started, so that
the caller can try something else from the same position.
"""
import copy
import logging
from typing import Dict, Tuple

from .args import Arguments, build_arguments
from .enum import FieldMode
from .exceptions import RwstructException, CustomException, SchemaError, with_context
from .fields import read_magic, write_magic, check_assertions
from .meta import MetaRecord, resolve_endianess
from .properties import Context, evaluate
from .streams import Stream, as_stream
from .types import as_bintype


logger = logging.getLogger(__name__)


def _pad_record(spec, stream, context, start, writing):
    if spec.pad_size_to is None:
        return

    pad = evaluate(spec.pad_size_to, context)
    size = stream.tell() - start
    if size < pad:
        if writing:
            stream.write(b'\x00' * (pad - size))
        else:
            stream.seek(start + pad)


def _read_mapped(spec, stream, endian, context):
    '''Read the source type of a record with a map and convert it.'''
    bintype = as_bintype(spec.map_from)
    value = bintype.read(stream, endian, bintype.default_arguments())

    if spec.map is not None:
        return spec.map(value)

    try:
        return spec.try_map(value)
    except Exception as e:
        raise CustomException(context.start, e) from e


def _read_fields(spec, stream, endian, context, layout):
    pendings = []
    for field in spec.fields:
        logger.debug('unpacking %s.%s', spec.name, field.name)
        offset = stream.tell()
        try:
            value, pending = field.read(stream, context, endian)
        except RwstructException as e:
            raise with_context(e, field.get_frame(context, spec.name))

        layout[field.name] = (offset, stream.tell() - offset)

        if pending is not None:
            pendings.append(pending)

    for pending in pendings:
        field = pending.field
        logger.debug('resolving %s.%s', spec.name, field.name)
        try:
            if field.offset_after is not None:
                pending.args = copy.copy(pending.args)
                pending.args['offset'] = evaluate(field.offset_after, context)
            pending(stream, context.start)
        except RwstructException as e:
            raise with_context(e, field.get_frame(context, spec.name))

    instance = spec.cls.__new__(spec.cls)
    for field in spec.get_permanent_fields():
        setattr(instance, field.name, context[field.name])
    instance._layout = layout

    return instance


def read_record(spec, stream, endian, args=None, extra_asserts=()):
    '''Read the record described by the RecordSpec and return an instance of its class.'''
    endian = resolve_endianess(spec.endian, endian)
    args = args if args is not None else build_arguments(spec.imports, owner=spec.name)
    start = stream.tell()
    context = Context(stream, args, start)

    logger.debug('unpacking \'%s\' at offset %d', spec.name, start)

    try:
        if spec.magic is not None:
            read_magic(spec.magic, stream, endian)

        check_assertions(spec.pre_assert, context, start)

        if spec.map_from is not None:
            instance = _read_mapped(spec, stream, endian, context)
            # the assertions see the fields of the mapped value
            for field in spec.get_permanent_fields():
                context[field.name] = getattr(instance, field.name)
        else:
            instance = _read_fields(spec, stream, endian, context, {})

        check_assertions(list(spec.asserts) + list(extra_asserts), context, start)

        _pad_record(spec, stream, context, start, writing=False)
    except Exception:
        logger.debug('rewinding \'%s\' to offset %d', spec.name, start)
        stream.seek(start)
        raise

    return instance


def _write_mapped(spec, value, stream, endian):
    bintype = as_bintype(spec.map_from)
    pos = stream.tell()

    if spec.map_write is not None:
        raw_value = spec.map_write(value)
    elif spec.try_map_write is not None:
        try:
            raw_value = spec.try_map_write(value)
        except Exception as e:
            raise CustomException(pos, e) from e
    else:
        raise SchemaError(f'{spec.name} is read with a map so it needs map_write to be written')

    bintype.write(raw_value, stream, endian, bintype.default_arguments())


def write_record(spec, value, stream, endian, args=None, extra_asserts=()):
    endian = resolve_endianess(spec.endian, endian)
    args = args if args is not None else build_arguments(spec.imports, owner=spec.name)
    start = stream.tell()
    context = Context(stream, args, start, values={
        field.name: getattr(value, field.name) for field in spec.get_permanent_fields()
    })

    logger.debug('packing \'%s\' at offset %d', spec.name, start)

    if spec.magic is not None:
        write_magic(spec.magic, stream, endian)

    if spec.map_from is not None:
        _write_mapped(spec, value, stream, endian)
        check_assertions(list(spec.asserts) + list(extra_asserts), context, start)
        _pad_record(spec, stream, context, start, writing=True)
        return

    for field in spec.fields:
        if field.write_calc is not None:
            context[field.name] = evaluate(field.write_calc, context)
        elif field.temp and field.mode == FieldMode.CALC:
            # not written but the fields after it can refer to it
            context[field.name] = evaluate(field.calc, context)
        elif field.temp and field.is_written():
            raise SchemaError(f'temporary field \'{field.name}\' of {spec.name} needs write_calc to be written')

        if not field.is_written():
            continue

        logger.debug('packing %s.%s', spec.name, field.name)
        try:
            field.write(context[field.name], stream, context, endian)
        except RwstructException as e:
            raise with_context(e, field.get_frame(context, spec.name, action='writing'))

    check_assertions(list(spec.asserts) + list(extra_asserts), context, start)

    _pad_record(spec, stream, context, start, writing=True)


def _get_call_arguments(bintype, args, kwargs):
    if isinstance(args, Arguments):
        return args

    if isinstance(args, (tuple, list)):
        return build_arguments(bintype.arguments, positional=args, owner=repr(bintype))

    named = dict(args or {})
    named.update(kwargs)

    return build_arguments(bintype.arguments, named=named, owner=repr(bintype))


def read(type, source, endian=None, args=None, **kwargs):
    '''Read a value of the given type from bytes, a path or a file object.

    The arguments of the type can be passed as a tuple, a dict or as keyword
    arguments; "endian" is the byte order to use when neither the record nor
    the field indicate one (the host's one if None).'''
    bintype = as_bintype(type)
    stream = as_stream(source)

    return bintype.read(stream, resolve_endianess(endian), _get_call_arguments(bintype, args, kwargs))


def write(type, value, sink=None, endian=None, args=None, **kwargs):
    '''Write the value with the given type: if no sink is given the bytes
    are returned.'''
    bintype = as_bintype(type)
    stream = as_stream(sink) if sink is not None else Stream(b'')

    bintype.write(value, stream, resolve_endianess(endian), _get_call_arguments(bintype, args, kwargs))

    return stream.getvalue() if sink is None else None


class Record(metaclass=MetaRecord):
    """
    Main class that defines a format: its fields are declared as class
    attributes and the record-level directives in the inner class Meta.

        class TLV(Record):
            class Meta:
                endian = Endianess.BIG_ENDIAN

            type   = Field(u8)
            length = Field(u16)
            data   = Field(Bytes(), count=Dependency('.length'))

    An instance is created by unpack() or by passing the values of the fields
    to the constructor; the fields not given take their default value.
    """

    def __init__(self, **kwargs):
        for field in self._meta.get_permanent_fields():
            value = kwargs.pop(field.name) if field.name in kwargs else field.get_default()
            setattr(self, field.name, value)

        if kwargs:
            raise TypeError(f'{self.__class__.__name__} has no field named {", ".join(kwargs)}')

        self._layout = {}

    def get_ordered_fields_name(self):
        return [_.name for _ in self._meta.get_permanent_fields()]

    def get_fields(self):
        '''It returns a list of couples (name, value) for each field.'''
        return [(_, getattr(self, _)) for _ in self.get_ordered_fields_name()]

    def __repr__(self):
        msg = []
        for field_name, value in self.get_fields():
            msg.append('%s=%r' % (field_name, value))
        return '<%s(%s)>' % (self.__class__.__name__, ','.join(msg))

    def __str__(self):
        msg = ''
        for field_name, value in self.get_fields():
            msg += '%s: %r\n' % (field_name, value)
        return msg

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented

        return self.get_fields() == other.get_fields()

    @property
    def layout(self) -> Dict[str, Tuple[int, int]]:
        '''Offset and size of every field read by unpack().'''
        return self._layout

    @classmethod
    def get_arguments(cls):
        return cls._meta.imports

    @classmethod
    def default_value(cls):
        return cls()

    @classmethod
    def read_options(cls, stream, endian, args):
        return read_record(cls._meta, stream, endian, args)

    @classmethod
    def write_options(cls, value, stream, endian, args):
        write_record(cls._meta, value, stream, endian, args)

    @classmethod
    def unpack(cls, source, endian=None, args=None, **kwargs):
        return read(cls, source, endian=endian, args=args, **kwargs)

    def pack(self, stream=None, endian=None, args=None, **kwargs):
        '''Encode the instance: it returns the bytes if no stream is passed.'''
        return write(self.__class__, self, sink=stream, endian=endian, args=args, **kwargs)
