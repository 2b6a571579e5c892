#!/usr/bin/env python3
"""
sizetree - Directory sizes in a tree-like format.

Walks a directory, prints its total size, then lists every entry below it
with its recursively aggregated size. Entries can be limited by depth,
filtered by a minimum size and sorted by size or by name. Unreadable
entries below the root are silently left out of the listing.
"""

import argparse
import logging
import math
import os
import stat
import sys
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MIN_SIZE = "0"

# Ordered from largest to smallest, first match wins.
SIZE_UNITS = [
    ("GB", 1024**3),
    ("MB", 1024**2),
    ("KB", 1024),
]

# Suffix lookup order for size expressions; single letters alias the
# two-letter form.
SIZE_SUFFIXES = [
    ("KB", 1024),
    ("MB", 1024**2),
    ("GB", 1024**3),
    ("B", 1),
    ("K", 1024),
    ("M", 1024**2),
    ("G", 1024**3),
]

CONNECTOR = "├── "
LAST_CONNECTOR = "└── "
GUIDE = "│   "
BLANK_GUIDE = "    "

DIRECTORY_GLYPH = "📂"
FILE_GLYPH = "📄"
SYMLINK_GLYPH = "🔗"


class ColorFormatter(logging.Formatter):
    """
    Custom logging formatter that adds ANSI color codes to log messages.

    This formatter applies color coding based on log levels for better
    readability in terminal output.
    """

    COLORS = {
        logging.DEBUG: "\033[90m",  # Gray
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[41m",  # Red background
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the log record with colors.

        Args:
            record (logging.LogRecord):
                The log record to format.

        Returns:
            str:
                The formatted log message with ANSI color codes.

        """
        color = self.COLORS.get(record.levelno, "")
        message = super().format(record)
        if color:
            message = f"{color}{message}{self.RESET}"
        return message


class SizeTreeError(Exception):
    """Base class for errors raised by sizetree."""


class IoFailure(SizeTreeError):
    """A filesystem operation on ``path`` failed.

    Attributes:
        path (str):
            The path the operation was applied to.
        error (OSError):
            The underlying error.

    """

    def __init__(self, path: str, error: OSError):
        super().__init__(f"I/O error on '{path}': {error.strerror or error}")
        self.path = path
        self.error = error


class ParseFailure(SizeTreeError, ValueError):
    """A size expression could not be parsed."""


@dataclass(frozen=True)
class FileEntry:
    """One entry of a single directory listing.

    Attributes:
        path (str):
            Full path of the entry.
        size (int):
            Size in bytes; for directories, the recursively aggregated total.
        is_directory (bool):
            Whether the entry is a directory.
        is_symlink (bool):
            Whether the entry is a symbolic link (never traversed).

    """

    path: str
    size: int
    is_directory: bool
    is_symlink: bool = False

    @property
    def name(self) -> str:
        """The last component of the entry path, safe to print."""
        return printable(os.path.basename(self.path))


def printable(text: str) -> str:
    """
    Make a filesystem string safe to write to any UTF-8 stream.

    Names that are not valid UTF-8 arrive as surrogate-escaped strings; the
    offending bytes are replaced with U+FFFD.

    Examples:
        >>> printable(os.fsdecode(b"bad\\xff.txt")) == "bad\\ufffd.txt"
        True

    """
    return os.fsencode(text).decode("utf-8", "replace")


def format_size(size: int) -> str:
    """
    Convert a size in bytes to a human-readable string in binary units.

    Args:
        size (int):
            Size in bytes.

    Returns:
        str:
            The size with two decimals and a KB, MB or GB unit, or as a
            plain integer followed by B below one kilobyte.

    Examples:
        >>> format_size(1023)
        '1023 B'
        >>> format_size(1536)
        '1.50 KB'

    """
    for unit, multiplier in SIZE_UNITS:
        if size >= multiplier:
            return f"{size / multiplier:.2f} {unit}"
    return f"{size} B"


def parse_size(size_str: str) -> int:
    """
    Parse a human-readable size expression into bytes.

    Supports formats like '100MB', '1.5G', '500KB', '20K' or plain numbers
    for bytes.

    Args:
        size_str (str):
            Size expression to parse.

    Returns:
        int:
            Size in bytes, truncated toward zero and never negative.

    Raises:
        ParseFailure: If the expression is empty, the number is invalid or
            the unit is not recognized.

    Examples:
        >>> parse_size('1KB')
        1024
        >>> parse_size('1.5MB')
        1572864

    """
    size_str = size_str.strip().upper()
    if not size_str:
        raise ParseFailure("Empty size string")

    value_str, multiplier = size_str, 1
    for suffix, suffix_multiplier in SIZE_SUFFIXES:
        if size_str.endswith(suffix):
            value_str = size_str[: -len(suffix)].strip()
            multiplier = suffix_multiplier
            break

    if "_" in value_str:
        raise ParseFailure(f"Invalid number: '{value_str}'")
    try:
        value = float(value_str)
    except ValueError:
        raise ParseFailure(f"Invalid number: '{value_str}'") from None
    if not math.isfinite(value):
        raise ParseFailure(f"Invalid number: '{value_str}'")

    return max(0, int(value * multiplier))


def compute_size(path: str, follow_symlinks: bool = False) -> int:
    """
    Compute the total size of a file or directory in bytes.

    Files count for their own length. Directories count for the sum of
    their children, where a child that cannot be measured counts as zero,
    and a directory that cannot be listed counts as zero as well. The walk
    keeps its own stack of pending directories, so nesting depth is not
    bounded by the interpreter recursion limit.

    Args:
        path (str):
            Path to measure.
        follow_symlinks (bool):
            Whether to dereference ``path`` itself when it is a symlink.
            Symlinks found below ``path`` are never followed.

    Returns:
        int:
            Total size in bytes.

    Raises:
        IoFailure: If ``path`` itself cannot be inspected.

    """
    try:
        path_stat = os.stat(path, follow_symlinks=follow_symlinks)
    except OSError as e:
        raise IoFailure(path, e) from e

    if not stat.S_ISDIR(path_stat.st_mode):
        return path_stat.st_size

    total_size = 0
    pending = [path]
    while pending:
        directory = pending.pop()
        try:
            with os.scandir(directory) as it:
                for entry in it:
                    try:
                        entry_stat = entry.stat(follow_symlinks=False)
                    except OSError as e:
                        logger.debug(f"Skipping {entry.path}: {e}")
                        continue
                    if stat.S_ISDIR(entry_stat.st_mode):
                        pending.append(entry.path)
                    else:
                        total_size += entry_stat.st_size
        except OSError as e:
            logger.debug(f"Cannot list {directory}: {e}")
    return total_size


def size_or_zero(path: str) -> int:
    """Return ``compute_size(path)``, or 0 when ``path`` cannot be inspected."""
    try:
        return compute_size(path)
    except IoFailure as e:
        logger.debug(str(e))
        return 0


def sort_key_size(entry: FileEntry) -> int:
    """Sort key function for sorting by size."""
    return entry.size


def sort_key_name(entry: FileEntry) -> str:
    """Sort key function for sorting by name."""
    return entry.name


def list_entries(
    directory: str,
    min_size: int = 0,
    sort_by_size: bool = True,
) -> list[FileEntry]:
    """
    List the immediate children of a directory with their sizes.

    Args:
        directory (str):
            Directory to list.
        min_size (int):
            Entries smaller than this many bytes are left out.
        sort_by_size (bool):
            Sort by descending size when True, by ascending name otherwise.

    Returns:
        list[FileEntry]:
            The surviving entries, sorted.

    Raises:
        IoFailure: If ``directory`` cannot be listed.

    Note:
        Children whose metadata cannot be read are skipped. Symlinks are
        reported with the size of the link itself.

    """
    entries = []
    try:
        it = os.scandir(directory)
    except OSError as e:
        raise IoFailure(directory, e) from e

    children = []
    with it:
        try:
            for child in it:
                children.append(child)
        except OSError as e:
            logger.debug(f"Listing of {directory} stopped early: {e}")

    for child in children:
        try:
            lstat = child.stat(follow_symlinks=False)
        except OSError as e:
            logger.debug(f"Skipping {child.path}: {e}")
            continue

        is_directory = stat.S_ISDIR(lstat.st_mode)
        if is_directory:
            size = size_or_zero(child.path)
        else:
            size = lstat.st_size

        if size < min_size:
            continue

        entries.append(
            FileEntry(
                path=child.path,
                size=size,
                is_directory=is_directory,
                is_symlink=stat.S_ISLNK(lstat.st_mode),
            )
        )

    if sort_by_size:
        entries.sort(key=sort_key_size, reverse=True)
    else:
        entries.sort(key=sort_key_name)
    return entries


def colored(text: str, color_code: str, light: bool = False) -> str:
    """
    Apply ANSI color codes to text.

    Args:
        text (str):
            Text to color
        color_code (str):
            ANSI color code (e.g., "31" for red, "32" for green)
        light (bool):
            Whether to use light (bright) variant of the color

    Returns:
        str:
            Text wrapped with ANSI color codes

    """
    if light:
        color_code = f"1;{color_code}"
    return f"\033[{color_code}m{text}\033[0m"


def color_size(size: int, use_color: bool) -> str:
    """
    Format a size, coloring it by unit when requested.

    Note:
        Color scheme: B gray, KB green, MB yellow, GB red.

    """
    s = format_size(size)
    if not use_color:
        return s
    unit_colors = {
        "B": "90",
        "KB": "32",
        "MB": "33",
        "GB": "31",
    }
    return colored(s, unit_colors.get(s.rsplit(" ", 1)[-1], "37"))


def color_name(entry: FileEntry, use_color: bool) -> str:
    """Color an entry name by type: directories blue, symlinks yellow, files white."""
    if not use_color:
        return entry.name
    if entry.is_directory:
        color_code = "34"
    elif entry.is_symlink:
        color_code = "33"
    else:
        color_code = "37"
    return colored(entry.name, color_code, True)


def entry_glyph(entry: FileEntry) -> str:
    """Return the icon printed before an entry name."""
    if entry.is_directory:
        return DIRECTORY_GLYPH
    if entry.is_symlink:
        return SYMLINK_GLYPH
    return FILE_GLYPH


def render_tree(
    directory: str,
    prefix: str = "",
    max_depth: int | None = None,
    min_size: int = 0,
    sort_by_size: bool = True,
    current_depth: int = 0,
    color: bool = False,
) -> None:
    """
    Print the contents of a directory, and of its subdirectories, with size
    information.

    Entries are printed in pre-order. Each level being printed is kept on an
    explicit stack together with its guide prefix and depth, so nesting
    depth is not bounded by the interpreter recursion limit.

    Args:
        directory (str):
            Directory whose contents are printed
        prefix (str):
            Tree guide string printed before every line at this level
        max_depth (int | None):
            Deepest level that is listed (None for unlimited)
        min_size (int):
            Entries smaller than this many bytes are not shown
        sort_by_size (bool):
            Sort siblings by descending size, or by name when False
        current_depth (int):
            Depth of ``directory`` below the root (root is 0)
        color (bool):
            Whether to use ANSI color codes

    Raises:
        IoFailure: If ``directory`` itself cannot be listed. Failures in
            subdirectories only stop the affected branch.

    """
    if max_depth is not None and current_depth > max_depth:
        return

    entries = list_entries(directory, min_size, sort_by_size)
    # Each frame: (remaining (index, entry) pairs, sibling count, prefix, depth).
    stack = [(iter(enumerate(entries)), len(entries), prefix, current_depth)]

    while stack:
        siblings, count, level_prefix, depth = stack[-1]
        item = next(siblings, None)
        if item is None:
            stack.pop()
            continue

        i, entry = item
        is_last = i == count - 1
        connector = LAST_CONNECTOR if is_last else CONNECTOR
        print(
            f"{level_prefix}{connector}{entry_glyph(entry)} "
            f"{color_name(entry, color)} ({color_size(entry.size, color)})"
        )

        if not entry.is_directory:
            continue
        if max_depth is not None and depth + 1 > max_depth:
            continue

        try:
            children = list_entries(entry.path, min_size, sort_by_size)
        except IoFailure as e:
            logger.debug(str(e))
            continue

        stack.append(
            (
                iter(enumerate(children)),
                len(children),
                level_prefix + (BLANK_GUIDE if is_last else GUIDE),
                depth + 1,
            )
        )


def non_negative_int(value: str) -> int:
    """Argparse type accepting integers greater than or equal to zero."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: '{value}'") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative: '{value}'")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="sizetree",
        description="Display directory sizes in a tree-like format.",
    )
    parser.add_argument(
        "directory",
        nargs="?",
        default=".",
        help="Directory to analyze (default: current directory)",
    )
    parser.add_argument(
        "--depth",
        type=non_negative_int,
        default=None,
        metavar="N",
        help="Maximum depth to display",
    )
    parser.add_argument(
        "--min-size",
        type=str,
        default=DEFAULT_MIN_SIZE,
        metavar="SIZE",
        help="Minimum size to display (e.g. '1MB', '500KB')",
    )
    parser.add_argument(
        "--sort-name",
        action="store_true",
        help="Sort by name instead of size",
    )
    parser.add_argument(
        "-S",
        "--summarize",
        action="store_true",
        help="Display only the total for the directory",
    )
    parser.add_argument(
        "-c",
        "--color",
        choices=["always", "never", "auto"],
        default="auto",
        help="Use colors in output (default: auto)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the sizetree command.

    Parses command-line arguments, validates the directory, prints its total
    size and then the tree of its contents.
    """
    args = build_parser().parse_args(argv)

    handler = logging.StreamHandler()
    handler.setFormatter(ColorFormatter("%(levelname)s: %(message)s"))
    # Drop handlers left over from a previous call.
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if args.debug else logging.INFO)

    use_color = args.color == "always" or (args.color == "auto" and sys.stdout.isatty())

    try:
        min_size = parse_size(args.min_size)
    except ParseFailure as e:
        logger.error(f"Size parsing error: {e}")
        sys.exit(1)

    directory = args.directory
    if not os.path.exists(directory):
        logger.error(f"{printable(directory)} does not exist")
        sys.exit(1)
    if not os.path.isdir(directory):
        logger.error(f"{printable(directory)} is not a directory")
        sys.exit(1)

    try:
        root_size = compute_size(directory, follow_symlinks=True)
    except IoFailure as e:
        logger.error(str(e))
        sys.exit(1)

    print(f"{printable(directory)} ({color_size(root_size, use_color)})")

    if args.summarize:
        return

    if root_size < min_size:
        print("No entries meet the minimum size criteria.")
        return

    try:
        render_tree(
            directory=directory,
            max_depth=args.depth,
            min_size=min_size,
            sort_by_size=not args.sort_name,
            color=use_color,
        )
    except IoFailure as e:
        logger.debug(str(e))


if __name__ == "__main__":
    main()
