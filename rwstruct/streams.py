import io
import logging
import os
from contextlib import contextmanager

from .exceptions import IoException


logger = logging.getLogger(__name__)


class Stream(object):
    '''This is a simple wrapper around bytes/path/file object to
    uniform its properties: it's the cursor every read and write goes through.

    The stream is borrowed: a file object passed from outside is never closed
    by us, only the files we opened ourselves from a path.'''
    def __init__(self, obj=b'', flags='rb'):
        '''Here we normalize the object in order to be accessed as a normal file object'''
        self.flags = flags
        self.obj = obj
        self.history = []
        self._owned = False

        init_method_name = 'init_%s' % self.obj.__class__.__name__

        init_method = getattr(self, init_method_name, self.init_file)

        init_method()

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.obj!r})>'

    def init_str(self):
        '''We think this is a path'''
        logger.debug('opening path \'%s\'' % self.obj)
        self.obj = open(self.obj, self.flags)
        self._owned = True

    def init_PosixPath(self):
        self.obj = str(self.obj)
        self.init_str()

    init_WindowsPath = init_PosixPath

    def init_bytes(self):
        '''We think these are raw bytes'''
        self.obj = io.BytesIO(self.obj)

    init_bytearray = init_bytes
    init_memoryview = init_bytes

    def init_file(self):
        for method in ('read', 'seek', 'tell'):
            if not hasattr(self.obj, method):
                raise ValueError('\'%s\' is the wrong kind of object to use as stream' % self.obj.__class__.__name__)

    def close(self):
        if self._owned:
            self.obj.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def tell(self):
        try:
            return self.obj.tell()
        except OSError as e:
            raise IoException(str(e)) from e

    def seek(self, offset, whence=os.SEEK_SET):
        if not isinstance(offset, int):
            raise ValueError('\'%s\' is the wrong kind of offset to use' % offset.__class__.__name__)

        try:
            return self.obj.seek(offset, whence)
        except (OSError, ValueError) as e:
            raise IoException(str(e)) from e

    def read(self, size=-1):
        try:
            return self.obj.read(size)
        except OSError as e:
            raise IoException(str(e)) from e

    def read_exact(self, size):
        '''Read exactly size bytes or fail with an end of data error.'''
        data = self.read(size)
        if len(data) != size:
            raise IoException(
                f'unexpected end of data: wanted {size} bytes, got {len(data)}', eof=True)

        return data

    def read_all(self):
        return self.read()

    def write(self, data):
        try:
            return self.obj.write(data)
        except OSError as e:
            raise IoException(str(e)) from e

    def getvalue(self):
        return self.obj.getvalue()

    def save(self):
        self.history.append(self.tell())

    def restore(self):
        old_seek = self.history.pop()
        self.seek(old_seek)

    def discard(self):
        self.history.pop()

    @contextmanager
    def checkpoint(self):
        '''Restore the position saved at the start of the block if it raises.'''
        self.save()
        try:
            yield self
        except BaseException:
            self.restore()
            raise
        else:
            self.discard()


def as_stream(obj):
    return obj if isinstance(obj, Stream) else Stream(obj)
