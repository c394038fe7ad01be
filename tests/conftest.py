import struct

import lz4.block
import pytest

KEY = bytes([0xDC, 0x45, 0xA6, 0x9C, 0xD3, 0x72, 0x4C, 0xAB])


def xor(data):
    return bytes(b ^ KEY[i % len(KEY)] for i, b in enumerate(data))

def make_archive(files, table1_size=None, table2_size=None, magic=b"2KPR"):
    """Build a chunk file from dicts with hash, type_code and payload.

    Optional keys: compress, encrypt, extra, decompressed_size.
    """
    raws = []
    for f in files:
        raw = f["payload"]
        size_field = 0
        if f.get("compress"):
            raw = lz4.block.compress(raw, store_size=False)
            size_field = len(raw)
        if f.get("encrypt"):
            raw = xor(raw)
            size_field |= 0x80000000
        raws.append((raw, size_field))

    table2 = b""
    for f in files:
        extra = f.get("extra", b"")
        table2 += struct.pack("<4sIII8x", f["type_code"], len(extra), 0,
                              f.get("decompressed_size", len(f["payload"])))
        table2 += extra

    offset = 25 + 20 * len(files) + len(table2)
    table1 = b""
    payloads = b""
    for f, (raw, size_field) in zip(files, raws):
        table1 += struct.pack("<QIII", f["hash"], offset, 0, size_field)
        payloads += raw
        offset += len(raw)

    header = magic + bytes(9) + struct.pack("<III", len(files),
        len(table1) if table1_size is None else table1_size,
        len(table2) if table2_size is None else table2_size)
    return header + table1 + table2 + payloads


@pytest.fixture
def sample_files():
    return [
        {"hash": 0x0123456789ABCDEF, "type_code": b"txt\x00", "payload": b"plain text"},
        {"hash": 2, "type_code": b"LTPR", "payload": b"portal " * 40, "compress": True},
        {"hash": 3, "type_code": b"LTPR", "payload": b"secret", "encrypt": True,
         "extra": b"\x01\x02\x03\x04\x05"},
        {"hash": 4, "type_code": b"MIRP", "payload": bytes(range(256)) * 4,
         "compress": True, "encrypt": True},
    ]

@pytest.fixture
def sample_archive(sample_files):
    return make_archive(sample_files)
