"""Tests for the delimited-line tokenizer."""

from pickbom.tokenizer import tokenize_line, tokenize_text


class TestTokenizeLine:
    """Tests for splitting a single line into cells."""

    def test_comma_and_semicolon_both_delimit(self):
        """Mixed delimiters split the same way."""
        assert tokenize_line("a,b;c") == ["a", "b", "c"]

    def test_quoted_delimiter_is_literal(self):
        """A delimiter inside quotes stays in the cell."""
        assert tokenize_line('1,"Bolt, M8",4') == ["1", "Bolt, M8", "4"]

    def test_doubled_quote_is_escaped(self):
        """Two quotes inside a quoted field become one literal quote."""
        assert tokenize_line('"12"" rail",2') == ['12" rail', "2"]

    def test_unterminated_quote_runs_to_end(self):
        """An unterminated quote never raises; it swallows the rest of the line."""
        assert tokenize_line('1,"open, still open') == ["1", "open, still open"]

    def test_empty_cells_preserved(self):
        """Consecutive delimiters produce empty cells."""
        assert tokenize_line("a,,c,") == ["a", "", "c", ""]

    def test_empty_line(self):
        """An empty line is a single empty cell."""
        assert tokenize_line("") == [""]

    def test_custom_delimiters(self):
        """Only the given delimiter characters split."""
        assert tokenize_line("a\tb,c", delimiters="\t") == ["a", "b,c"]


class TestTokenizeText:
    """Tests for tokenizing whole files."""

    def test_splits_crlf_and_lf(self):
        """Both Windows and Unix line endings separate rows."""
        rows = tokenize_text("a,b\r\nc,d\ne,f")
        assert rows == [["a", "b"], ["c", "d"], ["e", "f"]]

    def test_strips_byte_order_mark(self):
        """A leading BOM does not end up in the first header cell."""
        rows = tokenize_text("\ufeffLevel,PN")
        assert rows[0] == ["Level", "PN"]
