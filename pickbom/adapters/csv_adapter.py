import logging
import chardet
from pathlib import Path
from typing import List

from ..schema import DEFAULT_DELIMITERS
from ..tokenizer import tokenize_text

logger = logging.getLogger(__name__)


class CsvAdapter:
    """CSV adapter for reading delimited BOM exports as raw rows.

    Handles:
    - Multiple encodings (UTF-8, UTF-8-BOM, Windows-1252, ISO-8859-1, etc.)
    - Mixed comma/semicolon delimiters (tab for .tsv files)
    - Quoted cells with embedded delimiters and doubled quotes

    Rows are returned positionally (no header interpretation); header
    detection is the column resolver's job because real BOMs carry title and
    comment lines above the header.
    """

    FALLBACK_ENCODINGS = ['latin-1', 'cp1252', 'iso-8859-1']

    def __init__(self, delimiters: str = DEFAULT_DELIMITERS):
        self.delimiters = delimiters

    def can_handle(self, file_path: str) -> bool:
        """Check if this adapter can handle the given file."""
        return Path(file_path).suffix.lower() in [".csv", ".tsv", ".txt"]

    def _detect_encoding(self, raw_data: bytes) -> str:
        """Detect text encoding using chardet with fallback."""
        # Check for BOM first
        if raw_data.startswith(b'\xef\xbb\xbf'):
            return 'utf-8-sig'

        result = chardet.detect(raw_data[:10000])
        encoding = result.get('encoding') or 'utf-8'

        # Normalize common encodings
        encoding_lower = encoding.lower()
        if 'utf-8' in encoding_lower or 'utf8' in encoding_lower or encoding_lower == 'ascii':
            return 'utf-8'

        return encoding

    def decode(self, raw_data: bytes) -> str:
        """Decode raw file bytes to text.

        Raises:
            ValueError: If no candidate encoding can decode the data
        """
        encoding = self._detect_encoding(raw_data)
        try:
            return raw_data.decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            logger.warning(f"Decoding as {encoding} failed ({e}); trying fallbacks")
            for fallback_encoding in self.FALLBACK_ENCODINGS:
                try:
                    return raw_data.decode(fallback_encoding)
                except UnicodeDecodeError:
                    continue
            raise ValueError(f"Could not decode BOM data: {e}")

    def read_text(self, file_path: str) -> str:
        """Read a CSV file as text.

        Raises:
            FileNotFoundError: If file doesn't exist
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        raw_data = path.read_bytes()
        if not raw_data:
            return ""

        return self.decode(raw_data)

    def read_rows(self, file_path: str) -> List[List[str]]:
        """Read a CSV/TSV file and return tokenized rows in file order.

        Args:
            file_path: Path to the CSV/TSV file

        Returns:
            List of rows, each a list of cell strings
        """
        delimiters = '\t' if Path(file_path).suffix.lower() == '.tsv' else self.delimiters
        return tokenize_text(self.read_text(file_path), delimiters)
