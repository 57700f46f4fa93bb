"""
Tests for the PDF utility and the action dispatcher.
"""
import io
import os

import fitz
import pytest
from docx import Document
from PIL import Image
from PyPDF2 import PdfReader

from pdf_processor import download_url, process_pdf
from utils.pdf_processor import PDFProcessor, PDFProcessorError


@pytest.fixture
def processor():
    return PDFProcessor()


def _page_count(path):
    return len(PdfReader(path).pages)


class TestHelpers:
    """Filename sanitising and range parsing"""

    def test_sanitize_filename(self):
        assert PDFProcessor.sanitize_filename("my report (v2).pdf") == "my_report__v2__pdf"
        assert len(PDFProcessor.sanitize_filename("x" * 80)) == 50

    def test_parse_ranges(self, processor):
        assert processor.parse_ranges("1-1,2-3") == [(1, 1), (2, 3)]
        assert processor.parse_ranges(" 4 , 5-6 ") == [(4, 4), (5, 6)]
        assert processor.parse_ranges("") == []

    def test_parse_ranges_rejects_garbage(self, processor):
        with pytest.raises(PDFProcessorError):
            processor.parse_ranges("1-a")


class TestMergeSplit:
    """Page-level merge and split"""

    def test_merge_keeps_page_count_and_order(self, processor, make_pdf, write_file, tmp_path):
        a = write_file("a.pdf", make_pdf(pages=2, label="A"))
        b = write_file("b.pdf", make_pdf(pages=3, label="B"))
        out = str(tmp_path / "merged.pdf")

        processor.merge_pdfs([a, b], out)

        doc = fitz.open(out)
        assert len(doc) == 5
        assert "A 1" in doc[0].get_text()
        assert "A 2" in doc[1].get_text()
        assert "B 1" in doc[2].get_text()
        assert "B 3" in doc[4].get_text()
        doc.close()

    def test_split_by_ranges(self, processor, make_pdf, write_file, tmp_path):
        src = write_file("three.pdf", make_pdf(pages=3))

        paths = processor.split_pdf(src, str(tmp_path / "out"), processor.parse_ranges("1-1,2-3"))

        assert [os.path.basename(p) for p in paths] == ["split_1.pdf", "split_2.pdf"]
        assert [_page_count(p) for p in paths] == [1, 2]

    def test_split_without_ranges_gives_one_file_per_page(self, processor, make_pdf, write_file, tmp_path):
        src = write_file("three.pdf", make_pdf(pages=3))

        paths = processor.split_pdf(src, str(tmp_path / "out"))

        assert len(paths) == 3
        assert all(_page_count(p) == 1 for p in paths)

    def test_split_out_of_range(self, processor, make_pdf, write_file, tmp_path):
        src = write_file("two.pdf", make_pdf(pages=2))
        with pytest.raises(PDFProcessorError):
            processor.split_pdf(src, str(tmp_path / "out"), [(2, 5)])

    def test_merge_rejects_non_pdf(self, processor, write_file, tmp_path):
        bad = write_file("bad.pdf", b"not a pdf at all")
        with pytest.raises(PDFProcessorError):
            processor.merge_pdfs([bad], str(tmp_path / "m.pdf"))


class TestConversions:
    """PDF -> DOCX, PDF -> PNG, images -> PDF"""

    def test_pdf_to_docx_text_and_images(self, processor, make_pdf, make_image, write_file, tmp_path):
        src = write_file("doc.pdf", make_pdf(pages=2, image=make_image(size=(40, 30))))
        out = str(tmp_path / "doc.docx")

        processor.pdf_to_docx(src, out)

        document = Document(out)
        texts = [p.text for p in document.paragraphs]
        assert "Page 1" in texts[0]
        assert any("Page 2" in t for t in texts)
        assert len(document.inline_shapes) == 2

    def test_pdf_to_docx_handles_cmyk_images(self, processor, make_pdf, make_image, write_file, tmp_path):
        cmyk = make_image(size=(32, 32), color=(0, 255, 255, 0), fmt="JPEG", mode="CMYK")
        src = write_file("cmyk.pdf", make_pdf(pages=1, image=cmyk))
        out = str(tmp_path / "cmyk.docx")

        processor.pdf_to_docx(src, out)

        document = Document(out)
        assert len(document.inline_shapes) == 1
        images = [
            part for part in document.part.package.iter_parts()
            if part.content_type.startswith("image/")
        ]
        assert len(images) == 1
        with Image.open(io.BytesIO(images[0].blob)) as img:
            assert img.format == "PNG"
            assert img.mode in ("RGB", "RGBA")
            assert img.size == (32, 32)

    def test_pdf_to_images(self, processor, make_pdf, write_file, tmp_path):
        src = write_file("two.pdf", make_pdf(pages=2))

        paths = processor.pdf_to_images(src, str(tmp_path / "pages"))

        assert [os.path.basename(p) for p in paths] == ["page_1.png", "page_2.png"]
        with Image.open(paths[0]) as img:
            assert img.size == (1190, 1684)

    def test_images_to_pdf(self, processor, make_image, write_file, tmp_path):
        a = write_file("a.png", make_image(size=(100, 50)))
        b = write_file("b.jpg", make_image(size=(30, 60), fmt="JPEG"))
        out = str(tmp_path / "images.pdf")

        processor.images_to_pdf([a, b], out)

        doc = fitz.open(out)
        assert len(doc) == 2
        assert (doc[0].rect.width, doc[0].rect.height) == (100, 50)
        assert (doc[1].rect.width, doc[1].rect.height) == (30, 60)
        doc.close()

    def test_images_to_pdf_rejects_other_types(self, processor, make_image, write_file, tmp_path):
        gif = write_file("a.gif", make_image(fmt="GIF"))
        with pytest.raises(PDFProcessorError, match="Unsupported image type"):
            processor.images_to_pdf([gif], str(tmp_path / "x.pdf"))


class TestEdit:
    """Text and image overlays"""

    def test_add_text(self, processor, make_pdf, write_file, tmp_path):
        src = write_file("one.pdf", make_pdf(pages=2))
        out = str(tmp_path / "edited.pdf")

        processor.edit_pdf(src, out, [{"page": 2, "text": "Stamped", "x": 50, "y": 50}])

        doc = fitz.open(out)
        assert "Stamped" not in doc[0].get_text()
        assert "Stamped" in doc[1].get_text()
        doc.close()

    def test_add_image(self, processor, make_pdf, make_image, write_file, tmp_path):
        src = write_file("one.pdf", make_pdf(pages=1))
        img = write_file("logo.png", make_image(size=(80, 40)))
        out = str(tmp_path / "edited.pdf")

        processor.edit_pdf(src, out, [{"page": 1, "x": 10, "y": 10, "image_path": img}])

        doc = fitz.open(out)
        assert len(doc[0].get_images()) == 1
        doc.close()

    def test_page_out_of_range(self, processor, make_pdf, write_file, tmp_path):
        src = write_file("one.pdf", make_pdf(pages=1))
        with pytest.raises(PDFProcessorError):
            processor.edit_pdf(src, str(tmp_path / "e.pdf"), [{"page": 3, "text": "x"}])


class TestProcessPdf:
    """Dispatcher result contract"""

    def test_convert_to_word(self, make_pdf, write_file, tmp_path):
        src = write_file("in.pdf", make_pdf())

        result = process_pdf("convert-pdf-to-word", [src], str(tmp_path / "tmp"), {})

        assert result["type"] == "json"
        assert result["data"]["success"] is True
        out = result["outputs"][0]
        assert out.endswith(".docx")
        assert result["data"]["docUrl"] == download_url(out)

    def test_split_returns_urls(self, make_pdf, write_file, tmp_path):
        src = write_file("in.pdf", make_pdf(pages=3))

        result = process_pdf("split-pdf", [src], str(tmp_path / "tmp"), {"ranges": "1-1,2-3"})

        assert len(result["data"]["urls"]) == 2

    def test_edit_with_text_and_position(self, make_pdf, write_file, tmp_path):
        src = write_file("in.pdf", make_pdf())

        result = process_pdf(
            "edit-pdf", [src], str(tmp_path / "tmp"),
            {"text": "Signed", "position": '{"page": 1, "x": 100, "y": 120}'},
        )

        assert result["type"] == "json"
        doc = fitz.open(result["outputs"][0])
        assert "Signed" in doc[0].get_text()
        doc.close()

    def test_edit_without_edits_fails(self, make_pdf, write_file, tmp_path):
        src = write_file("in.pdf", make_pdf())

        result = process_pdf("edit-pdf", [src], str(tmp_path / "tmp"), {})

        assert result["type"] == "error"
        assert result["data"] == {"success": False, "error": "No edits provided"}

    def test_non_pdf_input(self, write_file, tmp_path):
        src = write_file("in.pdf", b"hello")

        result = process_pdf("convert-pdf-to-word", [src], str(tmp_path / "tmp"), {})

        assert result["status_code"] == 400
        assert result["data"]["error"] == "No valid PDF file provided"

    def test_merge_needs_two_files(self, make_pdf, write_file, tmp_path):
        src = write_file("in.pdf", make_pdf())

        result = process_pdf("merge-pdfs", [src], str(tmp_path / "tmp"), {})

        assert result["type"] == "error"
        assert result["data"]["success"] is False

    def test_unknown_action(self, make_pdf, write_file, tmp_path):
        src = write_file("in.pdf", make_pdf())

        result = process_pdf("rotate-pdf", [src], str(tmp_path / "tmp"), {})

        assert result["status_code"] == 404
        assert not (tmp_path / "tmp").exists()

    def test_failed_split_leaves_no_outputs(self, make_pdf, write_file, tmp_path):
        src = write_file("in.pdf", make_pdf(pages=3))
        out = tmp_path / "tmp"

        result = process_pdf("split-pdf", [src], str(out), {"ranges": "1-1,2-9"})

        assert result["status_code"] == 400
        assert "outside 1-3" in result["data"]["error"]
        assert os.listdir(out) == []

    def test_crashed_action_leaves_no_outputs(self, make_pdf, write_file, tmp_path, monkeypatch):
        src = write_file("in.pdf", make_pdf())
        out = tmp_path / "tmp"

        def _explode(input_path, output_path):
            with open(output_path, "wb") as f:
                f.write(b"partial")
            raise RuntimeError("disk full")

        monkeypatch.setattr("pdf_processor._processor.pdf_to_docx", _explode)

        result = process_pdf("convert-pdf-to-word", [src], str(out), {})

        assert result["status_code"] == 500
        assert os.listdir(out) == []

    def test_image_edit_rejects_non_object_position(self, make_pdf, make_image, write_file, tmp_path):
        src = write_file("in.pdf", make_pdf())
        image = write_file("stamp.png", make_image())

        result = process_pdf(
            "edit-pdf", [src], str(tmp_path / "tmp"),
            {"edits": '[{"text": "x"}]', "position": "[1]"},
            image_path=image,
        )

        assert result["status_code"] == 400
        assert result["data"]["error"] == "'position' must be a JSON object"
        assert os.listdir(tmp_path / "tmp") == []

    def test_image_joins_edits_at_position(self, make_pdf, make_image, write_file, tmp_path):
        src = write_file("in.pdf", make_pdf())
        image = write_file("stamp.png", make_image())

        result = process_pdf(
            "edit-pdf", [src], str(tmp_path / "tmp"),
            {"edits": '[{"text": "x", "page": 1, "x": 10, "y": 10}]', "position": '{"page": 1, "x": 60, "y": 60}'},
            image_path=image,
        )

        assert result["type"] == "json"
