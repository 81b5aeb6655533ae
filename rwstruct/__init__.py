"""
# Rwstruct, declarative binary records.

A binary format is described by declaring records, i.e. ordered lists of
fields, each one with a type and some directives telling how its value is
found in the stream: the same description is used in both directions

 1. unpack(): read the binary data and build the high-level representation,
    starting from the actual position of the stream

 2. pack(): encode the high-level representation back into binary data

    class Header(Record):
        class Meta:
            endian = Endianess.BIG_ENDIAN
            magic = b'HDR\\x00'

        length = Field(u16)
        data   = Field(Bytes(), count=Dependency('.length'))

    header = Header.unpack(b'HDR\\x00\\x00\\x02ok')

A value can be one of many alternatives (see rwstruct.union), can live
somewhere else in the stream (see rwstruct.pointers) and can depend on
values passed by whoever contains the record (see rwstruct.args).

A failure leaves the stream where the failing record started and it's
reported with the chain of the fields that were being processed (see
rwstruct.exceptions).
"""
from .args import Arg, Arguments
from .core import Record, read, write
from .enum import FieldMode, ErrorMode
from .exceptions import (
    RwstructException,
    IoException,
    PositionedException,
    MagicException,
    AssertionException,
    CustomException,
    NoVariantMatchException,
    EnumErrorsException,
    BacktraceException,
    BacktraceFrame,
    CustomFrame,
    UnresolvedPointerError,
    SchemaError,
)
from .fields import Field, Assert
from .meta import Endianess
from .pointers import FilePtr, Pointer
from .properties import Dependency, RatioDependency
from .streams import Stream
from .types import (
    BinType,
    StructType,
    u8, u16, u32, u64,
    i8, i16, i32, i64,
    f32, f64, bool_,
    Bytes,
    NullString,
    NullWideString,
    Array,
    Positioned,
    PosValue,
    BitFields,
)
from .union import Union, UnitEnum
