#!/usr/bin/env python3

import lz4.block
import numpy as np

from collections import namedtuple
from construct import StreamError, StringError
from chunkstructs import (Header, Table1Record, Table2Record,
                          HEADER_SIZE, TABLE1_RECORD_SIZE, TABLE2_RECORD_SIZE)

MAGIC = b"2KPR"

ENCRYPTED_FLAG = 0x80000000
SIZE_MASK      = 0x3FFFFFFF

XOR_KEY = np.frombuffer(bytes([0xDC, 0x45, 0xA6, 0x9C, 0xD3, 0x72, 0x4C, 0xAB]), dtype=np.uint8)


class ChunkError(Exception):
    pass

class InputNotFound(ChunkError):
    pass

class UnknownHeader(ChunkError):
    pass

class TruncatedArchive(ChunkError):
    pass

class BadTypeCode(ChunkError):
    pass

class TableBoundsMismatch(ChunkError):
    def __init__(self, table, expected, actual):
        ChunkError.__init__(self,
            "ASSERT: File Table %d ended at invalid position, expected %d, but got %d"
            % (table, expected, actual))
        self.table = table
        self.expected = expected
        self.actual = actual

class DecompressionFailure(ChunkError):
    def __init__(self, reason, entry=None):
        if entry is not None:
            reason = "Failed to decompress %s: %s" % (entry.filename, reason)
        ChunkError.__init__(self, reason)
        self.entry = entry


class Entry(namedtuple("Entry", """
    hash
    file_offset
    size_field
    type_code
    decompressed_size
    table1_offset
    table2_offset
    table2_size
    extra
""")):
    __slots__ = ()

    table1_size = TABLE1_RECORD_SIZE

    @property
    def encrypted(self):
        return bool(self.size_field & ENCRYPTED_FLAG)

    @property
    def compressed_size(self):
        return self.size_field & SIZE_MASK

    @property
    def compressed(self):
        return self.compressed_size != 0

    @property
    def raw_size(self):
        return self.compressed_size if self.compressed else self.decompressed_size

    @property
    def extension(self):
        return self.type_code[::-1]

    @property
    def filename(self):
        return "%016X.%s" % (self.hash, self.extension.lower())

    def __str__(self):
        return "%s => %016X @ %d (IsCompressed: %s | IsEncrypted: %s | Size: %d / %d)" % (
            self.type_code, self.hash, self.file_offset,
            self.compressed, self.encrypted,
            self.compressed_size, self.decompressed_size)


def decipher(data):
    """XOR with the repeating 8 byte key. Applying it twice gives back the input."""
    if not data:
        return bytes(data)
    buf = np.frombuffer(data, dtype=np.uint8)
    return (buf ^ np.resize(XOR_KEY, buf.size)).tobytes()

def decompress(data, size):
    try:
        out = lz4.block.decompress(data, uncompressed_size=size)
    except (lz4.block.LZ4BlockError, OverflowError, ValueError) as e:
        raise DecompressionFailure(str(e)) from e
    if len(out) != size:
        raise DecompressionFailure("got %d bytes, expected %d" % (len(out), size))
    return out


def read_entries(fd):
    """Parse the header and both tables from a stream positioned at offset 0.

    The i-th record of each table describes the same entry. The stream is
    left at the end of table 2; payload bytes are never touched.
    """
    try:
        magic = fd.read(len(MAGIC))
        if magic != MAGIC:
            raise UnknownHeader("ASSERT: Unknown header %s!"
                % magic.decode("ascii", "replace"))
        hdr = Header.parse_stream(fd)

        table1 = Table1Record[hdr.entry_count].parse_stream(fd)
        end = HEADER_SIZE + hdr.table1_size
        if fd.tell() != end:
            raise TableBoundsMismatch(1, end, fd.tell())

        table2 = Table2Record[hdr.entry_count].parse_stream(fd)
        end += hdr.table2_size
        if fd.tell() != end:
            raise TableBoundsMismatch(2, end, fd.tell())
    except StreamError as e:
        raise TruncatedArchive("Archive ended inside the file tables: %s" % e) from e
    except StringError as e:
        raise BadTypeCode("ASSERT: Type code is not ASCII: %s" % e) from e

    return [Entry(
        hash=t1.hash,
        file_offset=t1.file_offset,
        size_field=t1.size_field,
        type_code=t2.type_code,
        decompressed_size=t2.decompressed_size,
        table1_offset=t1.offset,
        table2_offset=t2.offset,
        table2_size=TABLE2_RECORD_SIZE + t2.additional_size,
        extra=t2.extra,
    ) for t1, t2 in zip(table1, table2)]


class ChunkFile:
    __slots__ = "fd", "entries"

    def __init__(self, fd):
        self.fd = fd
        self.entries = read_entries(fd)

    @classmethod
    def open(cls, path):
        fd = open(path, "rb")
        try:
            return cls(fd)
        except BaseException:
            fd.close()
            raise

    def close(self):
        self.fd.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def types(self):
        # first-seen order, one per distinct type code
        return list(dict.fromkeys(entry.type_code for entry in self.entries))

    def read_raw(self, entry):
        self.fd.seek(entry.file_offset)
        data = self.fd.read(entry.raw_size)
        if len(data) != entry.raw_size:
            raise TruncatedArchive("%016X: expected %d bytes at offset %d, got %d"
                % (entry.hash, entry.raw_size, entry.file_offset, len(data)))
        return data

    def read(self, entry):
        # the stored bytes are the encrypted form of the compressed stream
        data = self.read_raw(entry)
        if entry.encrypted:
            data = decipher(data)
        if entry.compressed:
            try:
                data = decompress(data, entry.decompressed_size)
            except DecompressionFailure as e:
                raise DecompressionFailure(str(e), entry) from e
        return data
