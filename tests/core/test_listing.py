"""Tests for ls -l output parsing."""

from datetime import datetime

from adb_channel.core.listing import FileEntry, FileType, parse_listing, parse_listing_line


SAMPLE_OUTPUT = """total 24
drwxr-xr-x 2 root root 4096 2024-01-01 00:00 lostdir
-rw-rw---- 1 u0_a12 sdcard_rw 1536 2023-11-05 14:32 notes.txt
lrwxrwxrwx 1 root root 11 2024-01-01 00:00 link -> target
-rw-rw---- 1 u0_a12 sdcard_rw 20 2023-11-05 14:32 My Holiday Photo.jpg
"""


class TestParseListingLine:
    """Test single line parsing."""

    def test_directory(self):
        """Test that directories have no size or date."""
        entry = parse_listing_line("drwxr-xr-x 2 root root 4096 2024-01-01 00:00 lostdir")
        assert entry.type is FileType.DIRECTORY
        assert entry.name == "lostdir"
        assert entry.size is None
        assert entry.date is None
        assert entry.symlink_target is None
        assert entry.links == 2
        assert entry.owner == "root"
        assert entry.group == "root"

    def test_regular_file(self):
        """Test a regular file with all columns."""
        entry = parse_listing_line("-rw-rw---- 1 u0_a12 sdcard_rw 1536 2023-11-05 14:32 notes.txt")
        assert entry == FileEntry(
            type=FileType.FILE,
            permissions="-rw-rw----",
            name="notes.txt",
            links=1,
            owner="u0_a12",
            group="sdcard_rw",
            size=1536,
            date=datetime(2023, 11, 5, 14, 32),
        )

    def test_symlink(self):
        """Test that symlink names are split at the arrow."""
        entry = parse_listing_line("lrwxrwxrwx 1 root root 11 2024-01-01 00:00 link -> target")
        assert entry.type is FileType.SYMLINK
        assert entry.name == "link"
        assert entry.symlink_target == "target"
        assert entry.is_symlink

    def test_symlink_with_spaces(self):
        """Test symlinks whose name and target contain spaces."""
        entry = parse_listing_line("lrwxrwxrwx 1 root root 21 2024-01-01 00:00 my link -> /sdcard/My Dir")
        assert entry.name == "my link"
        assert entry.symlink_target == "/sdcard/My Dir"

    def test_file_name_with_spaces_and_arrow_is_kept(self):
        """Test that only symlinks are split at an arrow."""
        entry = parse_listing_line("-rw-r--r-- 1 root root 5 2024-01-01 00:00 a -> b.txt")
        assert entry.type is FileType.FILE
        assert entry.name == "a -> b.txt"
        assert entry.symlink_target is None

    def test_name_with_embedded_spaces(self):
        """Test that spaced names are preserved verbatim."""
        entry = parse_listing_line("-rw-rw---- 1 u0_a12 sdcard_rw 20 2023-11-05 14:32 My  Holiday Photo.jpg")
        assert entry.type is FileType.FILE
        assert entry.name == "My  Holiday Photo.jpg"

    def test_directory_name_with_spaces(self):
        """Test that spaced directory names are preserved verbatim."""
        entry = parse_listing_line("drwxrwx--x 3 root sdcard_rw 4096 2024-02-29 23:59 Camera Roll")
        assert entry.type is FileType.DIRECTORY
        assert entry.name == "Camera Roll"

    def test_unparseable_numbers_become_none(self):
        """Test that non-numeric link and size columns are absent."""
        entry = parse_listing_line("-rw-r--r-- ? root root ? 2024-01-01 00:00 odd.bin")
        assert entry.type is FileType.FILE
        assert entry.links is None
        assert entry.size is None
        assert entry.name == "odd.bin"

    def test_invalid_date_becomes_none(self):
        """Test that an impossible date is absent rather than an error."""
        entry = parse_listing_line("-rw-r--r-- 1 root root 3 2024-13-45 99:99 odd.bin")
        assert entry.type is FileType.FILE
        assert entry.date is None
        assert entry.size == 3

    def test_malformed_line_degrades_to_unknown(self):
        """Test best-effort recovery for lines that don't match."""
        entry = parse_listing_line("-rw-r--r-- 1 root root 3 Jan 1 2024 legacy.txt")
        assert entry.type is FileType.UNKNOWN
        assert entry.permissions == "-rw-r--r--"
        assert entry.name == "legacy.txt"
        assert entry.size is None

    def test_error_line_degrades_to_unknown(self):
        """Test that error messages in the output become unknown entries."""
        entry = parse_listing_line("ls: ./secret: Permission denied")
        assert entry.type is FileType.UNKNOWN
        assert entry.permissions == "ls:"
        assert entry.name == "denied"


class TestParseListing:
    """Test full output parsing."""

    def test_sample_output(self):
        """Test that the summary line is skipped and entries keep their order."""
        entries = parse_listing(SAMPLE_OUTPUT)
        assert [e.name for e in entries] == ["lostdir", "notes.txt", "link", "My Holiday Photo.jpg"]
        assert [e.type for e in entries] == [
            FileType.DIRECTORY, FileType.FILE, FileType.SYMLINK, FileType.FILE,
        ]

    def test_blank_lines_and_crlf_ignored(self):
        """Test that blank lines and carriage returns don't produce entries."""
        output = "total 4\r\n\r\n-rw-r--r-- 1 root root 3 2024-01-01 00:00 a.txt\r\n\n"
        entries = parse_listing(output)
        assert len(entries) == 1
        assert entries[0].name == "a.txt"

    def test_truncated_output_keeps_length(self):
        """Test that a truncated last line still yields an entry."""
        output = SAMPLE_OUTPUT + "-rw-r--r-- 1 root"
        entries = parse_listing(output)
        assert len(entries) == 5
        assert entries[-1].type is FileType.UNKNOWN

    def test_empty_directory(self):
        """Test that a bare summary line yields no entries."""
        assert parse_listing("total 0\n") == []

    def test_empty_output(self):
        """Test that empty output yields no entries."""
        assert parse_listing("") == []
