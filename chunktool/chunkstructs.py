from construct import *

HEADER_SIZE = 25
TABLE1_RECORD_SIZE = 20
TABLE2_RECORD_SIZE = 24

# follows the 4 magic bytes
Header = Struct(
    Padding(9),
    "entry_count" / Int32ul,
    "table1_size" / Int32ul,
    "table2_size" / Int32ul,
)

Table1Record = Struct(
    "offset"      / Tell,
    "hash"        / Int64ul,
    "file_offset" / Int32ul,
    Padding(4),
    "size_field"  / Int32ul, #bit 31 = encrypted, low 30 = compressed size
)

Table2Record = Struct(
    "offset"            / Tell,
    "type_code"         / PaddedString(4, "ascii"), #extension spelled backwards
    "additional_size"   / Int32ul,
    Padding(4),
    "decompressed_size" / Int32ul,
    Padding(8),
    "extra"             / Bytes(this.additional_size),
)

__all__ = ["Header", "Table1Record", "Table2Record",
           "HEADER_SIZE", "TABLE1_RECORD_SIZE", "TABLE2_RECORD_SIZE"]
