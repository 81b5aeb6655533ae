from enum import Enum

import pytest

from rwstruct import (
    Record,
    Union,
    UnitEnum,
    Field,
    Dependency,
    Endianess,
    ErrorMode,
    Stream,
    Bytes,
    NullString,
    read,
    write,
    u8,
    u16,
    AssertionException,
    BacktraceException,
    EnumErrorsException,
    IoException,
    MagicException,
    NoVariantMatchException,
    SchemaError,
)


class Shape(Union):
    class Meta:
        endian = Endianess.LITTLE_ENDIAN

    class Circle(Record):
        class Meta:
            magic = b'C'

        radius = Field(u8)

    class Rect(Record):
        class Meta:
            magic = b'R'

        w = Field(u8)
        h = Field(u16)


def test_union():
    rect = Shape.unpack(b'R\x02\x03\x00')

    assert isinstance(rect, Shape.Rect)
    assert rect.w == 2
    assert rect.h == 3

    assert Shape.get_variant('Circle') is Shape.Circle
    assert Shape.pack(Shape.Circle(radius=5)) == b'C\x05'


def test_union_variant_rewinds():
    class Message(Union):
        class Checked(Record):
            a = Field(u8)
            b = Field(u8, asserts=[lambda this: this.b == 0])

        class Raw(Record):
            raw = Field(Bytes(2))

    message = Message.unpack(b'\x01\x02')

    assert isinstance(message, Message.Raw)
    assert message.raw == b'\x01\x02'


def test_union_aggregate_errors():
    stream = Stream(b'\x00X\x00')
    stream.seek(1)

    with pytest.raises(EnumErrorsException) as excinfo:
        read(Shape, stream)

    error = excinfo.value

    assert error.pos == 1
    assert [name for name, _ in error.variant_errors] == ['Circle', 'Rect']
    assert all(isinstance(_, MagicException) for name, _ in error.variant_errors)
    assert not error.is_eof()
    assert stream.tell() == 1


def test_union_eof():
    with pytest.raises(EnumErrorsException) as excinfo:
        Shape.unpack(b'')

    assert excinfo.value.is_eof()


def test_union_discard_errors():
    class Discarded(Union):
        class Meta:
            error_mode = ErrorMode.DISCARD

        class One(Record):
            class Meta:
                magic = b'1'

    with pytest.raises(NoVariantMatchException) as excinfo:
        Discarded.unpack(b'2')

    assert excinfo.value.pos == 0


def test_union_magic():
    class Tagged(Union):
        class Meta:
            magic = b'T'

        class One(Record):
            class Meta:
                magic = b'1'

        class Two(Record):
            class Meta:
                magic = b'2'

    assert isinstance(Tagged.unpack(b'T2'), Tagged.Two)
    assert Tagged.pack(Tagged.Two()) == b'T2'

    stream = Stream(b'X2')

    with pytest.raises(MagicException):
        read(Tagged, stream)

    assert stream.tell() == 0


def test_union_asserts():
    class Large(Union):
        class Meta:
            asserts = [lambda this: this.value > 0xff]

        class Byte(Record):
            value = Field(u8)

        class Word(Record):
            value = Field(u16)

    large = Large.unpack(b'\x00\x01', endian=Endianess.LITTLE_ENDIAN)

    assert isinstance(large, Large.Word)
    assert large.value == 0x100


def test_union_imports():
    class Payload(Union):
        class Meta:
            imports = ('kind',)

        class Text(Record):
            class Meta:
                pre_assert = [lambda this: this.kind == 1]

            text = Field(NullString())

        class Number(Record):
            class Meta:
                pre_assert = [lambda this: this.kind == 2]

            number = Field(u8)

    class Message(Record):
        kind    = Field(u8)
        payload = Field(Payload, args={'kind': Dependency('.kind')})

    assert Message.unpack(b'\x02\x07').payload.number == 7
    assert Message.unpack(b'\x01hi\x00').payload.text == b'hi'

    with pytest.raises(BacktraceException) as excinfo:
        Message.unpack(b'\x03\x00')

    cause = excinfo.value.root_cause()

    assert isinstance(cause, EnumErrorsException)
    assert all(isinstance(_, AssertionException) for name, _ in cause.variant_errors)

    message = Message(kind=2, payload=Payload.Number(number=7))

    assert message.pack() == b'\x02\x07'


def test_union_write_wrong_variant():
    class Other(Record):
        a = Field(u8)

    with pytest.raises(ValueError):
        Shape.pack(Other(a=1))


def test_union_with_fields():
    with pytest.raises(SchemaError):
        class Wrong(Union):
            a = Field(u8)


class Color(Enum):
    RED   = 1
    GREEN = 2
    BLUE  = 3


def test_unit_enum_repr():
    color = UnitEnum(Color, repr=u8)

    assert read(color, b'\x02') == Color.GREEN
    assert write(color, Color.BLUE) == b'\x03'
    assert color.default() == Color.RED


def test_unit_enum_repr_unknown():
    stream = Stream(b'\x09')

    with pytest.raises(BacktraceException) as excinfo:
        read(UnitEnum(Color, repr=u8), stream)

    error = excinfo.value

    assert isinstance(error.root_cause(), NoVariantMatchException)
    assert error.frames[0].message == 'Unexpected value for enum: 9'
    assert stream.tell() == 0


class Command(Enum):
    GO   = 1
    STOP = 2
    NOP  = 3


def test_unit_enum_magic():
    command = UnitEnum(Command, magic={
        Command.GO: b'GO',
        Command.STOP: b'ST',
        Command.NOP: None,
    })

    assert read(command, b'ST') == Command.STOP

    stream = Stream(b'XX')

    assert read(command, stream) == Command.NOP
    # the default consumes nothing
    assert stream.tell() == 0

    assert write(command, Command.GO) == b'GO'
    assert write(command, Command.NOP) == b''


def test_unit_enum_magic_kinds():
    command = UnitEnum(Command, magic={
        Command.GO: b'G',
        Command.STOP: b'ST',
        Command.NOP: (u8, 7),
    })

    assert read(command, b'\x07') == Command.NOP
    assert read(command, b'ST') == Command.STOP


def test_unit_enum_magic_failures():
    class Direction(Enum):
        LEFT  = 1
        RIGHT = 2

    direction = UnitEnum(Direction, magic={
        Direction.LEFT: b'LL',
        Direction.RIGHT: b'RR',
    })

    with pytest.raises(IoException) as excinfo:
        read(direction, b'L')

    assert excinfo.value.is_eof()

    with pytest.raises(NoVariantMatchException):
        read(direction, b'XX')


def test_unit_enum_pre_assert():
    class Opcode(Enum):
        NEW = 1
        OLD = 2

    opcode_type = UnitEnum(Opcode, magic={
        Opcode.NEW: b'\x01',
        Opcode.OLD: b'\x01',
    }, pre_assert={
        Opcode.NEW: lambda this: this.version >= 2,
    }, imports=('version',))

    class Instruction(Record):
        version = Field(u8)
        opcode  = Field(opcode_type, args={'version': Dependency('.version')})

    assert Instruction.unpack(b'\x01\x01').opcode == Opcode.OLD
    assert Instruction.unpack(b'\x02\x01').opcode == Opcode.NEW


def test_unit_enum_schema():
    with pytest.raises(SchemaError):
        UnitEnum(Color, repr=u8, magic={Color.RED: b'R'})

    with pytest.raises(SchemaError):
        UnitEnum(Color)

    with pytest.raises(SchemaError):
        UnitEnum(Color, magic={Color.RED: b'R'})


def test_union_explicit_variants():
    class Zero(Record):
        class Meta:
            pre_assert = [lambda this: this.x == 0]

        value = Field(u8)

    class One(Record):
        class Meta:
            pre_assert = [lambda this: this.x == 1]

        value = Field(u16)

    class Selected(Union):
        class Meta:
            imports = ('x',)
            variants = [Zero, One]

    stream = Stream(b'\x01\x00\xff')
    selected = read(Selected, stream, x=1, endian=Endianess.LITTLE_ENDIAN)

    assert isinstance(selected, One)
    assert selected.value == 1
    assert stream.tell() == 2
    # the variants are not changed by the union
    assert Zero._meta.imports == ()


def test_union_variant_shared():
    class Item(Record):
        class Meta:
            pre_assert = [lambda this: this.kind == 1]

        value = Field(u8)

    class ByKind(Union):
        class Meta:
            imports = ('kind',)
            variants = [Item]

    class ByKindAndSize(Union):
        class Meta:
            imports = ('kind', 'size')
            variants = [Item]

    assert read(ByKind, b'\x07', kind=1).value == 7
    assert read(ByKindAndSize, b'\x07', kind=1, size=4).value == 7
    assert Item._meta.imports == ()


def test_union_rewinds_on_any_error():
    def broken(stream, endian, args):
        stream.read(1)
        raise ValueError('broken')

    class Tagged(Union):
        class Meta:
            magic = b'T'

        class One(Record):
            value = Field(parse_with=broken, write_with=lambda value, stream, endian, args: None)

    stream = Stream(b'T\x01\x02')

    with pytest.raises(ValueError):
        read(Tagged, stream)

    assert stream.tell() == 0


def test_unit_enum_rewinds_on_any_error():
    def broken(this):
        raise KeyError('version')

    color_type = UnitEnum(Color, magic={
        Color.RED: b'R',
        Color.GREEN: b'G',
        Color.BLUE: b'B',
    }, pre_assert={Color.RED: broken})

    stream = Stream(b'R')

    with pytest.raises(KeyError):
        read(color_type, stream)

    assert stream.tell() == 0
