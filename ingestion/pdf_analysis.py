from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import List

import fitz
import numpy as np

LOW_TEXT_THRESHOLD = 50
HIGH_IMAGE_COVERAGE_THRESHOLD = 0.35
HIGH_LAYOUT_COMPLEXITY_THRESHOLD = 0.6

# Pixels darker than this on any channel count as ink.
INK_LEVEL = 245
SHORT_LINE_WORDS = 3
LINES_PER_AREA_UNIT = 100000.0

REASON_MESSAGES = {
    "low_text": "little extractable text; the page may be scanned and need OCR",
    "high_image_coverage": "mostly images or diagrams; content may need manual review",
    "high_layout_complexity": "dense multi-column layout; table content may be incomplete",
}


@dataclass(frozen=True)
class PageTriage:
    page_number: int
    text_length: int
    image_coverage_ratio: float
    layout_complexity_score: float
    reason_codes: List[str] = field(default_factory=list)

    @property
    def needs_review(self) -> bool:
        return bool(self.reason_codes)


def triage_page(page: fitz.Page, page_number: int) -> PageTriage:
    text_length = len((page.get_text("text") or "").strip())
    coverage = _estimate_image_coverage(page)
    layout = _estimate_layout_complexity(page)
    checks = (
        ("low_text", text_length < LOW_TEXT_THRESHOLD),
        ("high_image_coverage", coverage > HIGH_IMAGE_COVERAGE_THRESHOLD),
        ("high_layout_complexity", layout > HIGH_LAYOUT_COMPLEXITY_THRESHOLD),
    )
    return PageTriage(
        page_number=page_number,
        text_length=text_length,
        image_coverage_ratio=coverage,
        layout_complexity_score=layout,
        reason_codes=[code for code, flagged in checks if flagged],
    )


def triage_warnings(pdf: fitz.Document) -> List[str]:
    """Advisory per-page warnings; nothing here changes the extracted text."""
    warnings: List[str] = []
    for index in range(pdf.page_count):
        triage = triage_page(pdf.load_page(index), index + 1)
        warnings.extend(
            f"Page {triage.page_number}: {REASON_MESSAGES[code]}" for code in triage.reason_codes
        )
    return warnings


def _estimate_image_coverage(page: fitz.Page, zoom: float = 0.4) -> float:
    pixmap = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), colorspace=fitz.csRGB, alpha=False)
    pixels = np.frombuffer(pixmap.samples, dtype=np.uint8).reshape(
        pixmap.height, pixmap.width, pixmap.n
    )
    return float((pixels.min(axis=2) < INK_LEVEL).mean())


def _estimate_layout_complexity(page: fitz.Page) -> float:
    # Words carry (block_no, line_no) at positions 5 and 6.
    per_line = Counter((word[5], word[6]) for word in page.get_text("words"))
    if not per_line:
        return 0.0
    short_ratio = sum(1 for count in per_line.values() if count <= SHORT_LINE_WORDS) / len(per_line)
    area_units = max(float(page.rect.width * page.rect.height) / LINES_PER_AREA_UNIT, 1.0)
    density = min(1.0, len(per_line) / area_units / 3.0)
    return min(1.0, 0.6 * short_ratio + 0.4 * density)
