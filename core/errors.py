class DocumentProcessingError(RuntimeError):
    pass


class UnsupportedFormatError(DocumentProcessingError):
    def __init__(self, mime_type: str) -> None:
        super().__init__(f"Unsupported file type: {mime_type}")
        self.mime_type = mime_type


class ExtractionError(DocumentProcessingError):
    def __init__(self, file_name: str, reason: str) -> None:
        super().__init__(f"Failed to extract content from {file_name}: {reason}")
        self.file_name = file_name


class PatternConfigError(DocumentProcessingError):
    pass
