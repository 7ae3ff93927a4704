"""Exceptions raised by pickbom."""


class BomFormatError(ValueError):
    """A BOM file cannot be interpreted (no header row, no usable columns).

    Carries the offending file name so callers can report it per file.
    """

    def __init__(self, message: str, file_name: str = ""):
        super().__init__(message)
        self.file_name = file_name
