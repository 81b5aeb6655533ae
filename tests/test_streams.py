import io

import pytest

from rwstruct.exceptions import IoException
from rwstruct.streams import Stream, as_stream


def test_stream_from_bytes():
    stream = Stream(b'\x01\x02\x03\x04')

    assert stream.tell() == 0
    assert stream.read(2) == b'\x01\x02'
    assert stream.tell() == 2

    stream.seek(1)
    assert stream.read_all() == b'\x02\x03\x04'


def test_read_exact_eof():
    stream = Stream(b'\x01\x02\x03')

    with pytest.raises(IoException) as excinfo:
        stream.read_exact(5)

    assert excinfo.value.is_eof()


def test_seek_invalid():
    stream = Stream(b'\x01')

    with pytest.raises(IoException) as excinfo:
        stream.seek(-1)

    assert not excinfo.value.is_eof()

    with pytest.raises(ValueError):
        stream.seek('miao')


def test_save_restore():
    stream = Stream(b'abcdef')
    stream.seek(2)

    stream.save()
    stream.seek(5)
    stream.restore()

    assert stream.tell() == 2


def test_checkpoint():
    stream = Stream(b'abcdef')

    with pytest.raises(IoException):
        with stream.checkpoint():
            stream.read(3)
            stream.read_exact(10)

    assert stream.tell() == 0

    with stream.checkpoint():
        stream.read(3)

    assert stream.tell() == 3
    assert stream.history == []


def test_stream_from_path(tmp_path):
    path = tmp_path / 'data.bin'
    path.write_bytes(b'kebab')

    with Stream(path) as stream:
        assert stream.read(5) == b'kebab'

    assert stream.obj.closed


def test_stream_borrowed_file():
    fd = io.BytesIO(b'kebab')

    with Stream(fd) as stream:
        assert stream.read(2) == b'ke'

    # we didn't open it so we don't close it
    assert not fd.closed
    assert fd.tell() == 2


def test_stream_wrong_object():
    with pytest.raises(ValueError):
        Stream(42)


def test_as_stream():
    stream = Stream(b'')

    assert as_stream(stream) is stream
    assert isinstance(as_stream(b'\x00'), Stream)
