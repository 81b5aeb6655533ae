'''
# Portable Network Graphics

Format created to replace patent-emcumbered GIF files.

The specification is at <http://www.libpng.org/pub/png/spec/1.2/PNG-Contents.html> and
is available a full test-suite with a lot of PNG images covering all
the possible cases at <http://www.schaik.com/pngsuite/>.

Only the structure is described here: the chunks, with the data of IHDR
and PLTE decoded, the image data is left compressed.
'''
from enum import Enum
from zlib import crc32

from rwstruct import (
    Record,
    Union,
    Field,
    Assert,
    Endianess,
    Dependency,
    RatioDependency,
    Array,
    Bytes,
    u8,
    u32,
    write,
)


PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'


class PNGColorType(Enum):
    '''The color type definition of the PNG is a little tricky and doesn't seem
    to follow a bit-mask. We are going to list all the valid cases.'''
    GRAYSCALE = 0x00
    RGB       = 0x02
    RGB_PALETTE = 0x03
    GS_ALPHA    = 0x04
    RGBA        = 0x06


class PNGCompressionType(Enum):
    '''There is only one method of compression'''
    DEFLATE = 0x00


class PNGFilterType(Enum):
    '''This indicates the preprocessing method applied to the image data before compression. At present, only filter method 0 is defined'''
    ADAPTIVE = 0x00


def _enum_value(member):
    return member.value


class IHDRData(Record):
    '''
    Width and height give the image dimensions in pixels.
    Bit depth is a single-byte integer giving the number of bits per sample or per palette index (not per pixel).
    Color type is a single-byte integer that describes the interpretation of the image data.
    '''
    class Meta:
        endian = Endianess.BIG_ENDIAN

    width       = Field(u32)
    height      = Field(u32)
    depth       = Field(u8, default=8)
    color       = Field(u8, try_map=PNGColorType, map_write=_enum_value, default=PNGColorType.GRAYSCALE)
    compression = Field(u8, try_map=PNGCompressionType, map_write=_enum_value, default=PNGCompressionType.DEFLATE)
    filter      = Field(u8, try_map=PNGFilterType, map_write=_enum_value, default=PNGFilterType.ADAPTIVE)
    interlace   = Field(u8, asserts=[Assert(lambda this: this.interlace in (0, 1), error='unknown interlace method')])

    def __str__(self):
        return '%dx%dx%d' % (
            self.width,
            self.height,
            self.depth,
        )


class PLTEEntry(Record):
    red   = Field(u8)
    green = Field(u8)
    blue  = Field(u8)

    @property
    def pixel(self):
        return (self.red, self.green, self.blue)


def _is_chunk(name):
    return lambda this: this.type == name


class ChunkData(Union):
    '''The data of a chunk, selected by the type of the chunk that is passed
    as argument together with its length.'''
    class Meta:
        imports = ('type', 'length')

    class IHDR(Record):
        class Meta:
            pre_assert = [_is_chunk(b'IHDR')]

        header = Field(IHDRData)

    class PLTE(Record):
        class Meta:
            pre_assert = [_is_chunk(b'PLTE')]

        entries = Field(Array(PLTEEntry), count=RatioDependency(3, '.length'))

    class Raw(Record):
        data = Field(Bytes(), count=Dependency('.length'))


def pack_chunk_data(this):
    return write(ChunkData, this.data, endian=Endianess.BIG_ENDIAN, args={
        'type': this.type,
        'length': None,
    })


def _calculate_crc(this):
    '''The CRC is computed over the chunk type and chunk data, but not the length.'''
    return crc32(this.type + this.raw)


class PNGChunk(Record):
    '''This is the main data structure of the format: the 4 fields represent
    a chunk into the file. Each field is intended big-endian.

    A chunk is defined as critical or ancillary depending on the case of the
    starting letter of the type field.

    The crc field is network-byte-order CRC-32 computed over the chunk type and chunk data, but not the length.

    # Critical chunks

     1. IHDR: contains image's width, height, bit depth, color type, compression method, filter method and interlace method
     2. PLTE: contains the palette data
     3. IDAT: contains the actual image data (compressed)
     4. IEND: is the terminator chunk
    '''
    class Meta:
        endian = Endianess.NETWORK

    length = Field(u32, write_calc=lambda this: len(pack_chunk_data(this)))
    type   = Field(Bytes(4), default=b'IEND')
    # the data as it is, needed for the CRC
    raw    = Field(Bytes(), count=Dependency('.length'), restore_position=True, temp=True, write_calc=pack_chunk_data)
    data   = Field(ChunkData, args={
        'type': Dependency('.type'),
        'length': Dependency('.length'),
    }, pad_size_to=Dependency('.length'))
    crc    = Field(u32, write_calc=_calculate_crc, asserts=[
        Assert(lambda this: this.crc == _calculate_crc(this), error=lambda this: f'wrong CRC for chunk {this.type!r}'),
    ])

    def is_critical(self):
        return chr(self.type[0]).isupper()


class PNGFile(Record):
    class Meta:
        magic = PNG_SIGNATURE

    chunks = Field(Array(PNGChunk, until=lambda chunk: chunk.type == b'IEND'))

    def get_chunk_by_name(self, name):
        chunks = [_ for _ in self.chunks if _.type == name]

        if len(chunks) == 0:
            raise ValueError(f'no chunk with name {name!r}')

        return chunks if len(chunks) > 1 else chunks[0]

    @property
    def header(self):
        return self.get_chunk_by_name(b'IHDR').data.header

    @property
    def palette(self):
        return [_.pixel for _ in self.get_chunk_by_name(b'PLTE').data.entries]
