class DescriptorParsingError(ValueError):
    """Error while parsing a Bitcoin Output Descriptor from its string representation"""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ChecksumMismatch(DescriptorParsingError):
    """The checksum appended to a descriptor does not match its content."""
