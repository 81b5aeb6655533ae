class RwstructException(Exception):
    '''Base class to extend in order to throw exception in rwstruct.

    Every error that can be caused by the data being read (as opposed to a
    badly written schema) derives from this class, so a caller can catch it
    and maybe try an alternate schema.
    '''

    def root_cause(self):
        '''For a backtrace this is the error that caused it, for every other
        error it's the error itself.'''
        return self

    def is_eof(self):
        return False

    def custom_error(self, cls):
        '''Returns the payload of a CustomException if it's an instance of cls.'''
        return None


class IoException(RwstructException):
    '''The underlying stream failed, or it didn't have enough data.'''

    def __init__(self, message, eof=False):
        self.message = message
        self.eof = eof
        super().__init__(message)

    def is_eof(self):
        return self.eof

    def __str__(self):
        return self.message


class PositionedException(RwstructException):
    '''Structural errors always report the position where they happened.'''

    def __init__(self, pos):
        self.pos = pos
        super().__init__(pos)


class MagicException(PositionedException):
    '''An expected magic value was not found.'''

    def __init__(self, pos, found):
        self.found = found
        super().__init__(pos)

    def __str__(self):
        return f'bad magic at 0x{self.pos:x}: {self.found!r}'


class AssertionException(PositionedException):

    def __init__(self, pos, message):
        self.message = message
        super().__init__(pos)

    def __str__(self):
        return f'{self.message} at 0x{self.pos:x}'


class CustomException(PositionedException):
    '''Raised by an assertion with an error expression: the payload is whatever
    the expression returned.'''

    def __init__(self, pos, payload):
        self.payload = payload
        super().__init__(pos)

    def __str__(self):
        return f'{self.payload} at 0x{self.pos:x}'

    def custom_error(self, cls):
        return self.payload if isinstance(self.payload, cls) else None


class NoVariantMatchException(PositionedException):

    def __str__(self):
        return f'no variants matched at 0x{self.pos:x}'


class EnumErrorsException(PositionedException):
    '''None of the variants matched: it contains the couples (name, error)
    for every variant tried, in declaration order.'''

    def __init__(self, pos, variant_errors):
        self.variant_errors = variant_errors
        super().__init__(pos)

    def __str__(self):
        msg = f'no variants matched at 0x{self.pos:x}:'
        for name, error in self.variant_errors:
            msg += f'\n  {name}: {error}'

        return msg

    def is_eof(self):
        return all(error.is_eof() for _, error in self.variant_errors)


class BacktraceFrame(object):
    '''A frame with a message and the location of the directive that failed.'''

    def __init__(self, message, file=None, line=None):
        self.message = message
        self.file = file
        self.line = line

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.message!r})>'

    def __str__(self):
        if self.file is None:
            return self.message

        return f'{self.message}\n     at {self.file}:{self.line}'


class CustomFrame(object):
    '''A frame containing an user supplied payload.'''

    def __init__(self, payload):
        self.payload = payload

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.payload!r})>'

    def __str__(self):
        return str(self.payload)


class BacktraceException(RwstructException):
    '''An error with the chain of frames describing how it was reached, the
    innermost first.'''

    def __init__(self, error, frames):
        self.error = error
        self.frames = frames
        super().__init__(error)

    def root_cause(self):
        return self.error

    def is_eof(self):
        return self.error.is_eof()

    def custom_error(self, cls):
        return self.error.custom_error(cls)

    def __str__(self):
        lines = [f'Error: {self.error}']
        for idx, frame in enumerate(self.frames):
            lines.append(f'  {idx}: {frame}')

        return '\n'.join(lines)


def with_context(error, frame):
    '''Attach a frame to the error: if the error has already a backtrace, the
    frame is appended to it instead of wrapping it again.'''
    if isinstance(frame, str):
        frame = BacktraceFrame(frame)

    if isinstance(error, BacktraceException):
        error.frames.append(frame)
        return error

    return BacktraceException(error, [frame])


class UnresolvedPointerError(RuntimeError):
    '''Accessing the value of a pointer that has not been resolved yet.'''
    pass


class SchemaError(ValueError):
    '''The directives of a field or a record are not consistent.'''
    pass
