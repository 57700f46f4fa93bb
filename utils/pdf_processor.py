import io
import logging
import os
import re
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

import fitz  # PyMuPDF
from docx import Document
from docx.shared import Pt
from PIL import Image, UnidentifiedImageError
from PyPDF2 import PdfReader, PdfWriter
from PyPDF2.errors import PdfReadError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")


class PDFProcessorError(Exception):
    """Custom error for PDF processing problems."""
    pass


class PDFProcessor:
    """
    Page-level PDF utility behind the document actions.

    Every method reads its inputs from disk and writes its outputs to disk;
    a failure anywhere aborts the whole job with PDFProcessorError.
    """

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def sanitize_filename(name: str) -> str:
        return re.sub(r"[^a-zA-Z0-9_-]", "_", name or "")[:50]

    def _open_fitz(self, path: str) -> "fitz.Document":
        try:
            return fitz.open(path)
        except (RuntimeError, ValueError) as e:
            raise PDFProcessorError(f"Could not open PDF: {e}") from e

    def _reader(self, path: str) -> PdfReader:
        try:
            return PdfReader(path)
        except (PdfReadError, OSError, ValueError) as e:
            raise PDFProcessorError(f"Could not read PDF: {e}") from e

    def _write(self, writer: PdfWriter, out_path: str) -> None:
        with open(out_path, "wb") as f:
            writer.write(f)

    def _check_image_path(self, path: str) -> str:
        ext = os.path.splitext(path)[1].lower()
        if ext not in IMAGE_EXTENSIONS:
            raise PDFProcessorError("Unsupported image type")
        return ext

    def parse_ranges(self, text: Optional[str]) -> List[Tuple[int, int]]:
        """
        Convert "1-1,2-3,5" into [(1, 1), (2, 3), (5, 5)] (1-based, inclusive).
        """
        ranges: List[Tuple[int, int]] = []
        if not text or not text.strip():
            return ranges

        for part in text.split(","):
            part = part.strip()
            if not part:
                continue
            m = re.fullmatch(r"(\d+)\s*(?:-\s*(\d+))?", part)
            if not m:
                raise PDFProcessorError(f"Invalid page range: '{part}'")
            start = int(m.group(1))
            end = int(m.group(2)) if m.group(2) else start
            ranges.append((start, end))

        return ranges

    # ------------------------------------------------------------------
    # PDF -> DOCX
    # ------------------------------------------------------------------

    def _page_text(self, page: "fitz.Page") -> str:
        runs: List[str] = []
        for block in page.get_text("dict").get("blocks", []):
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    runs.append(span.get("text", ""))
        return " ".join(runs).strip()

    def _image_png(self, doc: "fitz.Document", xref: int, smask: int) -> Tuple[bytes, int, int]:
        """
        Decode an embedded image through its own colour space and re-encode
        it as PNG. CMYK, JPX and indexed images end up as plain RGB.
        """
        try:
            pix = fitz.Pixmap(doc, xref)
            if pix.colorspace is not None and pix.colorspace.n not in (1, 3):
                pix = fitz.Pixmap(fitz.csRGB, pix)
            if smask:
                mask = fitz.Pixmap(doc, smask)
                if pix.alpha:
                    pix = fitz.Pixmap(pix, 0)
                pix = fitz.Pixmap(pix, mask)
            return pix.tobytes("png"), pix.width, pix.height
        except (RuntimeError, ValueError) as e:
            raise PDFProcessorError(f"Could not decode embedded image {xref}: {e}") from e

    def pdf_to_docx(self, input_path: str, output_path: str) -> str:
        doc = self._open_fitz(input_path)
        document = Document()

        try:
            for page in doc:
                document.add_paragraph(self._page_text(page))

                for img in page.get_images(full=True):
                    xref, smask = img[0], img[1]
                    png, width, height = self._image_png(doc, xref, smask)
                    run = document.add_paragraph().add_run()
                    run.add_picture(
                        io.BytesIO(png),
                        width=Pt(width / 2),
                        height=Pt(height / 2),
                    )
        finally:
            doc.close()

        document.save(output_path)
        logger.info("Converted %s to DOCX %s", input_path, output_path)
        return output_path

    # ------------------------------------------------------------------
    # PDF -> PNG pages
    # ------------------------------------------------------------------

    def pdf_to_images(self, input_path: str, output_dir: str, scale: float = 2.0) -> List[str]:
        os.makedirs(output_dir, exist_ok=True)
        doc = self._open_fitz(input_path)
        paths: List[str] = []

        try:
            for page_num, page in enumerate(doc, 1):
                pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale))
                out_path = os.path.join(output_dir, f"page_{page_num}.png")
                pix.save(out_path)
                paths.append(out_path)
        finally:
            doc.close()

        return paths

    # ------------------------------------------------------------------
    # Images -> PDF
    # ------------------------------------------------------------------

    def images_to_pdf(self, image_paths: Sequence[str], output_path: str) -> str:
        if not image_paths:
            raise PDFProcessorError("No images provided")

        out = fitz.open()
        try:
            for path in image_paths:
                self._check_image_path(path)
                try:
                    with Image.open(path) as img:
                        width, height = img.size
                except (UnidentifiedImageError, OSError) as e:
                    raise PDFProcessorError(f"Could not read image: {e}") from e

                page = out.new_page(width=width, height=height)
                page.insert_image(fitz.Rect(0, 0, width, height), filename=path)

            out.save(output_path, deflate=True)
        finally:
            out.close()

        return output_path

    # ------------------------------------------------------------------
    # Merge / Split
    # ------------------------------------------------------------------

    def merge_pdfs(self, input_paths: Sequence[str], output_path: str) -> str:
        writer = PdfWriter()

        for path in input_paths:
            reader = self._reader(path)
            for page in reader.pages:
                writer.add_page(page)

        self._write(writer, output_path)
        return output_path

    def split_pdf(
        self,
        input_path: str,
        output_dir: str,
        ranges: Optional[Sequence[Tuple[int, int]]] = None
    ) -> List[str]:
        """
        Write split_<i>.pdf per (start, end) range; one file per page when
        no ranges are given.
        """
        reader = self._reader(input_path)
        total = len(reader.pages)
        os.makedirs(output_dir, exist_ok=True)

        if not ranges:
            ranges = [(i, i) for i in range(1, total + 1)]

        paths: List[str] = []
        for i, (start, end) in enumerate(ranges, 1):
            if start < 1 or end > total or start > end:
                raise PDFProcessorError(
                    f"Page range {start}-{end} is outside 1-{total}"
                )

            writer = PdfWriter()
            for idx in range(start - 1, end):
                writer.add_page(reader.pages[idx])

            out_path = os.path.join(output_dir, f"split_{i}.pdf")
            self._write(writer, out_path)
            paths.append(out_path)

        return paths

    # ------------------------------------------------------------------
    # Edit (text / image overlay)
    # ------------------------------------------------------------------

    def _overlay_page(self, width: float, height: float, edits: List[Dict]):
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=(width, height))

        for edit in edits:
            x = float(edit.get("x") or 0)
            y = float(edit.get("y") or 0)

            text = edit.get("text")
            if text:
                c.setFont("Helvetica", float(edit.get("size") or 12))
                c.setFillColorRGB(0, 0, 0)
                c.drawString(x, y, str(text))

            image_path = edit.get("image_path")
            if image_path:
                self._check_image_path(image_path)
                try:
                    img = ImageReader(image_path)
                    iw, ih = img.getSize()
                except OSError as e:
                    raise PDFProcessorError(f"Could not read image: {e}") from e
                c.drawImage(img, x, y, width=iw / 2, height=ih / 2, mask="auto")

        c.save()
        buffer.seek(0)
        return PdfReader(buffer).pages[0]

    def edit_pdf(self, input_path: str, output_path: str, edits: Sequence[Dict]) -> str:
        """
        edits: [{"page": 1, "text": "Hello", "x": 50, "y": 50, "size": 12,
                 "image_path": "/path/to/img.png"}, ...]

        Page numbers are 1-based; x/y are PDF points from the bottom-left.
        """
        reader = self._reader(input_path)
        total = len(reader.pages)

        by_page: Dict[int, List[Dict]] = defaultdict(list)
        for edit in edits:
            try:
                page_num = int(edit.get("page", 1))
            except (TypeError, ValueError):
                raise PDFProcessorError(f"Invalid page number: {edit.get('page')!r}")
            if not 1 <= page_num <= total:
                raise PDFProcessorError(f"Page {page_num} is outside 1-{total}")
            by_page[page_num - 1].append(edit)

        writer = PdfWriter()
        for idx, page in enumerate(reader.pages):
            if idx in by_page:
                overlay = self._overlay_page(
                    float(page.mediabox.width),
                    float(page.mediabox.height),
                    by_page[idx],
                )
                page.merge_page(overlay)
            writer.add_page(page)

        self._write(writer, output_path)
        return output_path
