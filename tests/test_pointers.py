import pytest

from rwstruct import (
    Record,
    Field,
    Endianess,
    Stream,
    FilePtr,
    Pointer,
    Array,
    Bytes,
    NullString,
    read,
    u8,
    u16,
    BacktraceException,
    UnresolvedPointerError,
)


def test_pointer():
    class Header(Record):
        name = Field(FilePtr(u8, NullString()))
        size = Field(u8)

    stream = Stream(b'\x03\x07\xffabc\x00')
    header = read(Header, stream)

    assert header.name.ptr == 3
    assert header.name.value == b'abc'
    assert header.size == 7
    # resolving the pointer doesn't move the stream
    assert stream.tell() == 2


def test_pointer_is_deferred():
    class Early(Record):
        ptr  = Field(FilePtr(u8, u8))
        peek = Field(calc=lambda this: this.ptr.resolved)

    early = Early.unpack(b'\x01\x09')

    assert early.peek is False
    assert early.ptr.resolved
    assert early.ptr.value == 9


def test_unresolved_pointer_value():
    class Bad(Record):
        ptr   = Field(FilePtr(u8, u8))
        value = Field(calc=lambda this: this.ptr.value)

    with pytest.raises(UnresolvedPointerError):
        Bad.unpack(b'\x01\x09')

    assert 'unresolved' in repr(Pointer(1))


def test_deref_now():
    class Now(Record):
        size = Field(FilePtr(u8, u8), deref_now=True)
        data = Field(Bytes(), count=lambda this: this.size.value)

    now = Now.unpack(b'\x03ab\x02')

    assert now.size.value == 2
    assert now.data == b'ab'


def test_pointer_base_is_the_record():
    class Entry(Record):
        ptr = Field(FilePtr(u8, u8))

    class Table(Record):
        pad   = Field(u16)
        entry = Field(Entry)

    table = Table.unpack(b'\x00\x00\x02\xaa\x55')

    assert table.entry.ptr.value == 0x55


def test_pointer_offset():
    class Entry(Record):
        ptr = Field(FilePtr(u8, u8), offset=0)

    class Table(Record):
        pad   = Field(u8)
        entry = Field(Entry)

    table = Table.unpack(b'\x07\x00')

    assert table.entry.ptr.value == 7


def test_pointer_offset_after():
    class After(Record):
        ptr  = Field(FilePtr(u8, u8), offset_after=lambda this: this.base)
        base = Field(u8)

    after = After.unpack(b'\x01\x02\xaa\xbb')

    assert after.ptr.value == 0xbb


def test_pointer_inner_arguments():
    class Named(Record):
        length = Field(u8)
        name   = Field(FilePtr(u8, Bytes()), args={'inner': {'count': 2}})

    assert Named.unpack(b'\x02\x03xabc').name.value == b'ab'


def test_array_of_pointers():
    class Table(Record):
        ptrs = Field(Array(FilePtr(u8, u8)), count=2)

    table = Table.unpack(b'\x02\x03\x10\x20')

    assert [_.value for _ in table.ptrs] == [0x10, 0x20]


def test_pointer_write():
    class Header(Record):
        class Meta:
            endian = Endianess.BIG_ENDIAN

        name = Field(FilePtr(u16, NullString()))
        size = Field(u8)

    assert Header(name=Pointer(4), size=7).pack() == b'\x00\x04\x07'


def test_pointer_out_of_range():
    class After(Record):
        ptr  = Field(FilePtr(u8, u8))
        base = Field(u8)

    stream = Stream(b'\x09\x00')

    with pytest.raises(BacktraceException) as excinfo:
        read(After, stream)

    assert excinfo.value.is_eof()
    assert excinfo.value.frames[0].message == "While parsing field 'ptr' in After"
    assert stream.tell() == 0
