import argparse
import mimetypes
import os
import sys
from datetime import datetime, timezone

from core.contracts import ExtractionReport, RawDocument
from extraction.pipeline import analyze_document

EXTRA_MIME_TYPES = {
    ".md": "text/markdown",
    ".vsdx": "application/octet-stream",
    ".vsd": "application/octet-stream",
}


def guess_mime_type(path: str) -> str:
    extension = os.path.splitext(path)[1].lower()
    if extension in EXTRA_MIME_TYPES:
        return EXTRA_MIME_TYPES[extension]
    guessed, _ = mimetypes.guess_type(path)
    return guessed or "application/octet-stream"


def write_evidence(report: ExtractionReport, output_path: str) -> None:
    with open(output_path, "w", encoding="utf-8") as handle:
        handle.write("# Business Requirement Extraction Evidence\n\n")
        handle.write(f"Generated: {datetime.now(timezone.utc).isoformat()}\n\n")
        handle.write("## Document\n")
        handle.write(f"- file: {report.file_name}\n")
        handle.write(f"- format: {report.format_family}\n")
        handle.write(f"- lines: {report.total_lines} total, {report.processed_lines} candidates\n")
        handle.write(f"- elements: {report.count}\n")
        handle.write(f"- quality score: {report.quality_metrics.quality_score}\n")
        handle.write(
            f"- workflow: CC {report.workflow.cyclomatic_complexity} "
            f"({report.workflow.complexity_level})\n"
        )
        if report.manual_review_required:
            handle.write(f"- manual review: {report.message}\n")
        handle.write("\n")

        if report.warnings:
            handle.write("## Warnings\n")
            for warning in report.warnings:
                handle.write(f"- {warning}\n")
            handle.write("\n")

        handle.write("## Breakdown\n")
        for label, counts in (
            ("type", report.breakdown.by_type),
            ("priority", report.breakdown.by_priority),
            ("confidence", report.breakdown.by_confidence),
            ("complexity", report.breakdown.by_complexity),
            ("testability", report.breakdown.by_testability),
        ):
            rendered = ", ".join(f"{key}={value}" for key, value in counts.items()) or "none"
            handle.write(f"- {label}: {rendered}\n")
        handle.write("\n")

        if report.flowchart is not None:
            handle.write("## Flowchart\n")
            handle.write(
                f"- pages={report.flowchart.total_pages} "
                f"shapes={report.flowchart.total_shapes} "
                f"connectors={report.flowchart.total_connectors} "
                f"complexity={report.flowchart.complexity}\n\n"
            )

        handle.write("## Elements\n")
        if not report.elements:
            handle.write("- none\n")
        for element in report.elements:
            handle.write(
                f"- line {element.line_number} [{element.type}, {element.priority}/"
                f"{element.confidence}, score={element.quality_score}] {element.text}\n"
                f"  - section: {element.section or '-'}; {element.complexity_description}\n"
            )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Extract business requirements from a document and write a markdown report."
    )
    parser.add_argument("path", help="Document to analyze")
    parser.add_argument("--mime", default="", help="MIME type; guessed from the extension if omitted")
    parser.add_argument("--output", default="", help="Report path (default: <file>.report.md)")
    args = parser.parse_args(argv)

    if not os.path.exists(args.path):
        print(f"File not found: {args.path}", file=sys.stderr)
        return 1
    with open(args.path, "rb") as handle:
        content = handle.read()

    document = RawDocument(
        content=content,
        mime_type=args.mime or guess_mime_type(args.path),
        file_name=os.path.basename(args.path),
    )
    report = analyze_document(document)
    output_path = args.output or f"{args.path}.report.md"
    write_evidence(report, output_path)
    print(f"{report.count} elements written to {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
