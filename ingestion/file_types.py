from core.errors import UnsupportedFormatError

IMAGE_MIMES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/tiff",
    "image/webp",
    "image/svg+xml",
}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".webp", ".svg"}

EXCEL_MIMES = {
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.oasis.opendocument.spreadsheet",
}
EXCEL_EXTENSIONS = {".xls", ".xlsx", ".ods"}

POWERPOINT_MIMES = {
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/vnd.oasis.opendocument.presentation",
}
POWERPOINT_EXTENSIONS = {".ppt", ".pptx", ".odp"}

# Browsers rarely know .vsdx, so uploads usually arrive as octet-stream.
VISIO_MIMES = {"application/octet-stream", "application/vnd.ms-visio.drawing.main+xml"}
VISIO_EXTENSIONS = {".vsd", ".vsdx"}

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
WORD_MIMES = {
    DOCX_MIME,
    "application/msword",
    "application/rtf",
    "application/vnd.oasis.opendocument.text",
}

PDF_MIME = "application/pdf"
TEXT_MIMES = {"text/plain", "text/markdown"}


def is_image_file(mime_type: str, extension: str) -> bool:
    return mime_type in IMAGE_MIMES or extension.lower() in IMAGE_EXTENSIONS


def is_excel_file(mime_type: str, extension: str) -> bool:
    return mime_type in EXCEL_MIMES or extension.lower() in EXCEL_EXTENSIONS


def is_powerpoint_file(mime_type: str, extension: str) -> bool:
    return mime_type in POWERPOINT_MIMES or extension.lower() in POWERPOINT_EXTENSIONS


def is_visio_file(mime_type: str, extension: str) -> bool:
    return mime_type in VISIO_MIMES or extension.lower() in VISIO_EXTENSIONS


def is_word_file(mime_type: str) -> bool:
    return mime_type in WORD_MIMES


def detect_format_family(mime_type: str, extension: str) -> str:
    if mime_type == PDF_MIME:
        return "pdf"
    if mime_type in TEXT_MIMES:
        return "text"
    if is_word_file(mime_type):
        return "word"
    if is_image_file(mime_type, extension):
        return "image"
    if is_excel_file(mime_type, extension):
        return "excel"
    if is_powerpoint_file(mime_type, extension):
        return "powerpoint"
    if is_visio_file(mime_type, extension):
        return "visio"
    raise UnsupportedFormatError(mime_type)
