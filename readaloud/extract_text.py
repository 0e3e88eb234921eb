"""
Fragment Extraction Module

Turns a source document into positioned text fragments in reading order.
PDF pages are read span by span with PyMuPDF; plain-text files become one
fragment per non-empty line, laid out on synthetic pages.
"""

from pathlib import Path
from typing import Iterator, List, Optional

import fitz  # PyMuPDF
from rich.progress import track

from readaloud.readalong.fragments import TextFragment
from readaloud.utils import logger
from readaloud.utils.config import config
from readaloud.utils.errors import ExtractionError

SUPPORTED_SUFFIXES = (".pdf", ".txt")


def _fix_encoding(text: str) -> str:
    """Fix common encoding issues in PDF text."""
    # Common ligature replacements
    replacements = {
        "ﬁ": "fi",
        "ﬂ": "fl",
        "ﬀ": "ff",
        "ﬃ": "ffi",
        "ﬄ": "ffl",
        "‘": "'",  # Left single quote
        "’": "'",  # Right single quote
        "“": '"',  # Left double quote
        "”": '"',  # Right double quote
        "…": "...",  # Ellipsis
        "\xa0": " ",  # Non-breaking space
    }

    for old, new in replacements.items():
        text = text.replace(old, new)

    return text


class FragmentExtractor:
    """Extract positioned text fragments from PDF or TXT files."""

    def __init__(self, path: Path, lines_per_page: Optional[int] = None):
        """
        Open a source document.

        Args:
            path: PDF or TXT file
            lines_per_page: Lines per synthetic page for TXT input
                (default from config)
        """
        self.path = Path(path)
        if not self.path.exists():
            raise ExtractionError(f"File not found: {path}")

        self.suffix = self.path.suffix.lower()
        if self.suffix not in SUPPORTED_SUFFIXES:
            raise ExtractionError(
                f"Unsupported file type '{self.suffix}', expected one of {SUPPORTED_SUFFIXES}"
            )

        self.lines_per_page = lines_per_page or config.lines_per_page
        if self.lines_per_page <= 0:
            raise ExtractionError(f"lines_per_page must be positive, got {self.lines_per_page}")

        self.doc = None
        if self.suffix == ".pdf":
            try:
                self.doc = fitz.open(self.path)
            except RuntimeError as e:
                raise ExtractionError(f"Cannot open PDF {self.path.name}: {e}") from e

    @property
    def total_pages(self) -> int:
        if self.doc is not None:
            return len(self.doc)
        lines = len(self._text_lines())
        return max(1, -(-lines // self.lines_per_page))

    def extract(self, quiet: bool = False) -> List[TextFragment]:
        """
        Extract every fragment in the document.

        Args:
            quiet: Suppress progress output

        Returns:
            Fragments in reading order; blank spans are dropped
        """
        if self.doc is None:
            fragments = list(self._text_fragments())
        else:
            fragments = []
            if not quiet:
                logger.info(f"Extracting fragments from {self.total_pages} pages...")
            pages = range(self.total_pages)
            for page_num in track(pages, description="Extracting", disable=quiet):
                fragments.extend(self._page_fragments(page_num))

        if not quiet:
            logger.debug(f"Extracted {len(fragments)} fragments from {self.path.name}")
        return fragments

    def _page_fragments(self, page_num: int) -> Iterator[TextFragment]:
        page = self.doc[page_num]
        page_width = page.rect.width
        page_height = page.rect.height
        if page_width <= 0 or page_height <= 0:
            return

        blocks = page.get_text("dict")["blocks"]
        for block in blocks:
            if block["type"] != 0:  # Not a text block
                continue
            for line in block["lines"]:
                for span in line["spans"]:
                    text = _fix_encoding(span["text"]).strip()
                    if not text:
                        continue
                    x0, y0, x1, y1 = span["bbox"]
                    yield TextFragment(
                        text=text,
                        page=page_num + 1,
                        left=x0 / page_width * 100,
                        top=y0 / page_height * 100,
                        width=(x1 - x0) / page_width * 100,
                        height=(y1 - y0) / page_height * 100,
                    )

    def _text_lines(self) -> List[str]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ExtractionError(f"Cannot read {self.path.name}: {e}") from e
        lines = (_fix_encoding(line).strip() for line in content.splitlines())
        return [line for line in lines if line]

    def _text_fragments(self) -> Iterator[TextFragment]:
        line_height = 100 / self.lines_per_page
        for i, line in enumerate(self._text_lines()):
            row = i % self.lines_per_page
            yield TextFragment(
                text=line,
                page=i // self.lines_per_page + 1,
                left=0.0,
                top=row * line_height,
                width=100.0,
                height=line_height,
            )

    def close(self) -> None:
        """Close the PDF document."""
        if self.doc is not None:
            self.doc.close()
            self.doc = None

    def __enter__(self) -> "FragmentExtractor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def extract_fragments(
    path: Path,
    lines_per_page: Optional[int] = None,
    quiet: bool = False,
) -> List[TextFragment]:
    """
    Main function to extract fragments from a document.

    Args:
        path: PDF or TXT file
        lines_per_page: Lines per synthetic page for TXT input
        quiet: Print nothing to stdout, for machine-readable output

    Returns:
        Fragments in reading order
    """
    with FragmentExtractor(path, lines_per_page=lines_per_page) as extractor:
        fragments = extractor.extract(quiet=quiet)

    if not quiet:
        logger.success(f"Extracted {len(fragments):,} fragments from {Path(path).name}")
    return fragments
