from splice.diff_model import LineKind, group_hunks, parse_diff, parse_hunk_header

SAMPLE_PATCH = """@@ -10,7 +10,9 @@
 function foo() {
   const x = 1;
-  const y = 2;
+  const y = 3;
+  const z = 4;
+  const w = 5;
   return x + y;
 }"""


def test_parse_hunk_header_defaults_missing_lengths() -> None:
    header = parse_hunk_header("@@ -3 +4 @@ def main():")
    assert header is not None
    assert (header.old_start, header.old_count, header.new_start, header.new_count) == (3, 1, 4, 1)


def test_parse_hunk_header_rejects_other_lines() -> None:
    assert parse_hunk_header(" @@ -1,2 +1,2 @@") is None
    assert parse_hunk_header("+added") is None


def test_parse_diff_classifies_and_numbers_lines() -> None:
    lines = parse_diff(SAMPLE_PATCH)

    assert [line.kind for line in lines] == [
        LineKind.CONTEXT,
        LineKind.CONTEXT,
        LineKind.DELETION,
        LineKind.ADDITION,
        LineKind.ADDITION,
        LineKind.ADDITION,
        LineKind.CONTEXT,
        LineKind.CONTEXT,
    ]
    assert [line.old_line for line in lines] == [10, 11, 12, None, None, None, 13, 14]
    assert [line.new_line for line in lines] == [10, 11, None, 12, 13, 14, 15, 16]
    assert [line.index for line in lines] == list(range(8))
    assert lines[2].raw_text == "-  const y = 2;"
    assert lines[2].text == "  const y = 2;"


def test_parse_diff_cursors_track_insertion_point() -> None:
    lines = parse_diff(SAMPLE_PATCH)
    additions = [line for line in lines if line.kind is LineKind.ADDITION]
    # Additions sit after the deletion of old line 12, in front of old line 13.
    assert {line.old_cursor for line in additions} == {13}
    assert lines[2].new_cursor == 12


def test_parse_diff_coordinates_are_monotonic_across_hunks() -> None:
    patch = "\n".join(
        [
            "@@ -5,3 +5,4 @@",
            " line 5",
            " line 6",
            "+new line 7",
            " line 7",
            "@@ -20,3 +21,4 @@",
            " line 20",
            "-line 21",
            "+changed 21",
            "+new 22",
            " line 22",
        ]
    )
    lines = parse_diff(patch)
    old_numbers = [line.old_line for line in lines if line.old_line is not None]
    new_numbers = [line.new_line for line in lines if line.new_line is not None]

    assert old_numbers == sorted(old_numbers)
    assert new_numbers == sorted(new_numbers)
    assert [line.hunk_index for line in lines] == [0, 0, 0, 0, 1, 1, 1, 1, 1]
    assert len(group_hunks(lines)) == 2


def test_parse_diff_new_file_starts_at_line_one() -> None:
    lines = parse_diff("@@ -0,0 +1,2 @@\n+first\n+second")
    assert [line.new_line for line in lines] == [1, 2]
    assert all(line.old_cursor == 1 for line in lines)


def test_parse_diff_skips_no_newline_marker_and_preamble() -> None:
    patch = "diff --git a/x b/x\n--- a/x\n+++ b/x\n@@ -1 +1 @@\n-old\n\\ No newline at end of file\n+new"
    lines = parse_diff(patch)
    assert [line.raw_text for line in lines] == ["-old", "+new"]


def test_parse_diff_treats_empty_line_as_context() -> None:
    lines = parse_diff("@@ -1,3 +1,3 @@\n a\n\n c")
    assert lines[1].kind is LineKind.CONTEXT
    assert lines[1].text == ""
    assert lines[2].old_line == 3


def test_parse_diff_without_header_is_empty() -> None:
    assert parse_diff("just some text\n+not a hunk") == []
    assert parse_diff("") == []


def test_form_feed_and_carriage_return_stay_inside_a_line() -> None:
    lines = parse_diff("@@ -1,3 +1,3 @@\n a\x0cpage\n-b\n+B\n c")

    assert len(lines) == 4
    assert lines[0].text == "a\x0cpage"
    assert lines[3].raw_text == " c"
    assert lines[3].old_line == 3

    crlf = parse_diff("@@ -1,2 +1,2 @@\r\n a\r\n-b\r\n+B\r\n")
    assert [line.raw_text for line in crlf] == [" a\r", "-b\r", "+B\r"]
    assert crlf[2].new_line == 2


def test_no_newline_marker_flags_the_line_before_it() -> None:
    lines = parse_diff(
        "@@ -1,2 +1,2 @@\n a\n-b\n\\ No newline at end of file\n+B\n\\ No newline at end of file"
    )

    assert [line.raw_text for line in lines] == [" a", "-b", "+B"]
    assert [line.no_newline for line in lines] == [False, True, True]
