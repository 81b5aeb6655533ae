import logging
from typing import Any, Dict, Optional


class Context(object):
    '''The namespace the directive expressions are evaluated against.

    It contains the fields already processed of the record (in reading they are
    only the ones preceding the field under evaluation) and it falls back to
    the arguments imported by the record, so that an expression can be written
    like

        lambda this: this.length * this.ratio

    where "length" is a field and "ratio" an imported argument.

    The attributes "stream", "args", "start", "position" and "values" are reserved:
    a field with one of these names is still reachable via this['stream'].
    '''

    def __init__(self, stream, args=None, start=0, values: Optional[Dict[str, Any]] = None):
        self._values = dict(values or {})
        self._stream = stream
        self._args = args if args is not None else {}
        self._start = start

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)

        if name in self._values:
            return self._values[name]

        if name in self._args:
            return self._args[name]

        raise AttributeError(f"'{name}' is neither a field nor an argument")

    def __getitem__(self, name):
        return self._values[name]

    def __setitem__(self, name, value):
        self._values[name] = value

    def __contains__(self, name):
        return name in self._values

    def __repr__(self):
        return f'<{self.__class__.__name__}({self._values!r})>'

    @property
    def values(self):
        return self._values

    @property
    def stream(self):
        return self._stream

    @property
    def args(self):
        return self._args

    @property
    def start(self):
        '''Position of the stream when the record started.'''
        return self._start

    @property
    def position(self):
        return self._stream.tell()


class Dependency:
    '''This makes the relation between fields possible.

    In practice this class allows to write something like

        class Simple(Record):
            length = Field(u32)
            data = Field(Bytes(), count=Dependency('.length'))

    and have the length of the string contained in the field named 'data'
    strictly connected to the field named 'length'.

    The expression is a dotted path: the first component is the name of a
    field already read (or of an imported argument), the following ones
    are attributes of its value. The leading '.' is optional and indicates
    that the path starts from the record under evaluation (it's the only
    scope an expression can see).
    '''
    def __init__(self, expression):
        self.expression = expression
        self.logger = logging.getLogger(__name__)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.expression})>'

    def __call__(self, context):
        return self.resolve(context)

    def get_fields_path(self):
        # '.miao'.split(".") -> ['', 'miao']
        # 'miao'.split(".") -> ['miao']
        fields_path = self.expression.split('.')
        if fields_path[0] == '':
            fields_path = fields_path[1:]

        return fields_path

    def resolve(self, context):
        '''With this method we resolve the attribute with respect to the context
        passed as argument.'''
        self.logger.debug('trying to resolve \'%s\'' % self.expression)

        value = context
        for component_name in self.get_fields_path():
            value = getattr(value, component_name)

        self.logger.debug(' resolved with value %r' % (value,))

        return value


class RatioDependency(Dependency):

    def __init__(self, ratio, expression):
        super().__init__(expression)
        self._ratio = ratio

    def resolve(self, context):
        value = super().resolve(context)

        return int(value / self._ratio)


def evaluate(expression, context):
    '''Resolve a directive expression: a Dependency or a callable taking the
    context, everything else is a literal.'''
    if isinstance(expression, Dependency):
        return expression.resolve(context)

    if callable(expression) and not isinstance(expression, type):
        return expression(context)

    return expression
