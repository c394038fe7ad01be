#!/usr/bin/env python3
import sys

from pathlib import Path
from argparse import ArgumentParser
from chunkfile import ChunkFile, ChunkError, InputNotFound

USAGE = """usage: chunktool list ChunkFile [Filter ...]
       chunktool extract ChunkFile OutputDirectory [Filter ...]"""


def select(entries, filters=()):
    filters = set(filters)
    for entry in entries:
        if filters and entry.type_code not in filters:
            continue
        yield entry

def list_entries(entries, filters=(), out=None):
    count = 0
    for entry in select(entries, filters):
        print(entry, file=out)
        count += 1
    return count

def extract_entries(chunk, outdir, filters=(), out=None, keep_going=False):
    """Decode the selected entries of chunk into outdir/<extension>/.

    Every type directory is created up front. The first failing entry
    aborts the run unless keep_going is set, in which case failures are
    reported and returned as (entry, error) pairs.
    """
    outdir = Path(outdir)
    for type_code in chunk.types():
        (outdir / type_code[::-1]).mkdir(parents=True, exist_ok=True)

    failures = []
    for entry in select(chunk.entries, filters):
        try:
            data = chunk.read(entry)
        except ChunkError as e:
            if not keep_going:
                raise
            sys.stderr.write("Skipping %s: %s\n" % (entry.filename, e))
            failures.append((entry, e))
            continue

        with (outdir / entry.extension / entry.filename).open("wb") as fd:
            fd.write(data)
        print(entry, file=out)
    return failures


class UsageParser(ArgumentParser):
    # bad or missing arguments are not an error, just show how to call us
    def error(self, message):
        print(USAGE)
        self.exit(0)

argparser = UsageParser(prog="chunktool")
commands = argparser.add_subparsers(dest="command")

list_cmd = commands.add_parser("list")
list_cmd.add_argument("file", type=Path)
list_cmd.add_argument("filters", nargs="*")

extract_cmd = commands.add_parser("extract")
extract_cmd.add_argument("file", type=Path)
extract_cmd.add_argument("out", type=Path)
extract_cmd.add_argument("filters", nargs="*")

def run(args):
    if not args.file.is_file():
        raise InputNotFound("File %s not found!" % args.file)

    print("Building file entry list...")
    with ChunkFile.open(args.file) as chunk:
        if args.command == "list":
            print("Listing file entries...")
            list_entries(chunk.entries, args.filters)
        else:
            print("Extracting file entries...")
            extract_entries(chunk, args.out, args.filters)

def main(argv=None):
    args = argparser.parse_args(argv)
    if args.command is None:
        print(USAGE)
        return 0

    try:
        run(args)
    except ChunkError as e:
        print(e)
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
