class ConfigurationError(ValueError):
    """Invalid chunking request (sizes, selection window, stride too small)."""


class UnrecognizedFormatError(ValueError):
    """Input does not start with a FASTA or FASTQ header sentinel."""


class UnsupportedCombinationError(ValueError):
    """Format cannot be used with the requested paired/interleaved mode."""


class StreamIOError(OSError):
    """Read, seek or write failure on an input stream or output sink."""


class EmptyInputWarning(UserWarning):
    pass
