import logging
import sys
from enum import Enum, auto

from .args import as_arg
from .exceptions import SchemaError


class Endianess(Enum):
    LITTLE_ENDIAN = auto()
    BIG_ENDIAN    = auto()
    NETWORK       = auto()
    NATIVE        = auto()

    def resolve(self) -> "Endianess":
        '''Return the concrete byte order, i.e. LITTLE_ENDIAN or BIG_ENDIAN.'''
        if self == Endianess.NETWORK:
            return Endianess.BIG_ENDIAN

        if self == Endianess.NATIVE:
            return Endianess.LITTLE_ENDIAN if sys.byteorder == 'little' else Endianess.BIG_ENDIAN

        return self

    @property
    def struct_prefix(self):
        return '<' if self.resolve() == Endianess.LITTLE_ENDIAN else '>'

    @property
    def byteorder(self):
        '''The name int.from_bytes() wants.'''
        return 'little' if self.resolve() == Endianess.LITTLE_ENDIAN else 'big'


def resolve_endianess(*candidates) -> Endianess:
    '''The first not None wins, the host byte order if all of them are None.'''
    for endian in candidates:
        if endian is not None:
            return endian.resolve()

    return Endianess.NATIVE.resolve()


class RecordSpec(object):
    """Class containing metadata about a record: the ordered fields and the
    record-level directives taken from the inner class Meta."""

    OPTIONS = {
        'endian': None,
        'magic': None,
        'asserts': (),
        'pre_assert': (),
        'imports': (),
        'pad_size_to': None,
        # the record is read as map_from and converted
        'map_from': None,
        'map': None,
        'try_map': None,
        'map_write': None,
        'try_map_write': None,
    }

    def __init__(self, name, meta=None):
        self.name = name
        self.fields = []
        self.cls = None

        for option, default in self.OPTIONS.items():
            setattr(self, option, getattr(meta, option, default))

        self.asserts = list(self.asserts)
        self.pre_assert = list(self.pre_assert)
        self.imports = tuple(as_arg(_) for _ in self.imports)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.name}, fields={[_.name for _ in self.fields]})>'

    def get_field(self, name):
        for field in self.fields:
            if field.name == name:
                return field

        raise KeyError(name)

    def get_permanent_fields(self):
        return [_ for _ in self.fields if not _.temp]


class MetaRecord(type):

    spec_class = RecordSpec

    def __new__(cls, names, bases, attrs):
        '''All of this is a big hack, maybe too inspired by how Django does a similar thing!'''
        module = attrs.pop('__module__')
        classcell = attrs.pop('__classcell__', None)
        meta = attrs.pop('Meta', None)

        new_attrs = {
            '__module__': module,
        }
        if classcell is not None:
            new_attrs['__classcell__'] = classcell
        if '__qualname__' in attrs:
            new_attrs['__qualname__'] = attrs.pop('__qualname__')
        new_cls = super(MetaRecord, cls).__new__(cls, names, bases, new_attrs)

        # handle inheritance, both of fields and of the Meta options
        parents = [_ for _ in bases if isinstance(_, MetaRecord) and hasattr(_, '_meta')]
        if meta is None and parents:
            meta = getattr(parents[0], '_meta_options', None)

        new_cls._meta_options = meta
        new_cls._meta = cls.spec_class(names, meta)
        new_cls._meta.cls = new_cls

        for parent in parents:
            for field in parent._meta.fields:
                new_cls._meta.fields.append(field)

        cls.logger = logging.getLogger(__name__)

        for obj_name, obj in attrs.items():
            new_cls.add_to_class(obj_name, obj)

        new_cls.validate_schema()

        return new_cls

    def add_to_class(cls, name, value):
        if hasattr(value, 'contribute_to_record'):
            cls.logger.debug('contribute_to_record() found for field \'%s\'' % name)
            value.contribute_to_record(cls, name)
        else:
            setattr(cls, name, value)

    def validate_schema(cls):
        names = [_.name for _ in cls._meta.fields]
        for name in names:
            if names.count(name) > 1:
                raise SchemaError(f'field {name} is already present in record {cls.__name__}')

        spec = cls._meta
        if spec.map is not None and spec.try_map is not None:
            raise SchemaError(f'map and try_map are mutually exclusive in record {cls.__name__}')

        if spec.map_write is not None and spec.try_map_write is not None:
            raise SchemaError(f'map_write and try_map_write are mutually exclusive in record {cls.__name__}')

        if (spec.map_from is None) != (spec.map is None and spec.try_map is None):
            raise SchemaError(f'record {cls.__name__} needs both map_from and map (or try_map)')
