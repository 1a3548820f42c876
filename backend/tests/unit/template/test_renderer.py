"""
Unit Tests for the DOCX template renderer

Covers:
1. Field substitution, missing values and line breaks
2. Image tags: media parts, relationships, content types and sizes
3. Aggregated template errors
"""
import base64
import io
import re
import zipfile

import pytest
from PIL import Image

from conftest import build_docx, docx_text, header_text, read_part, replace_part
from app.core.exceptions import TemplateError
from app.services.template.images import EMU_PER_PIXEL
from app.services.template.renderer import TemplateRenderer, inspect_template, render_template, tokenize


def png_base64(size=(20, 10), color="red") -> str:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


class TestTokenize:
    """Test splitting node text into segments"""

    def test_fields_and_images(self):
        """Test text, field and image segments are recognised"""
        segments, errors = tokenize("NIM {{nim}} {{%qr_code}}")

        assert errors == []
        assert segments == [("text", "NIM "), ("field", "nim"), ("text", " "), ("image", "qr_code")]

    def test_unclosed_tag(self):
        """Test an opening delimiter without closer is reported"""
        _, errors = tokenize("Nama {{nama_lengkap")

        assert errors[0]["reason"] == "unclosed tag"

    def test_empty_and_invalid_tags(self):
        """Test empty and illegal tag names are reported"""
        _, errors = tokenize("{{}} {{nama lengkap}}")

        assert [e["reason"] for e in errors] == ["empty tag", "invalid tag name"]

    def test_stray_closing_delimiter(self):
        """Test a closing delimiter with no opener is reported"""
        _, errors = tokenize("selesai}} di sini")

        assert errors[0]["reason"] == "closing delimiter without opening delimiter"


class TestRenderFields:
    """Test text substitution"""

    def test_fields_substituted(self):
        """Test field placeholders are replaced with their values"""
        template = build_docx(["Nama: {{nama_lengkap}}", "NIM: {{nim}}"])

        output = render_template(template, {"nama_lengkap": "Budi Santoso", "nim": "24060120120001"})
        text = docx_text(output)

        assert "Nama: Budi Santoso" in text
        assert "NIM: 24060120120001" in text
        assert "{{" not in text

    def test_split_runs_rendered_without_repair(self):
        """Test the renderer copes with split placeholders itself"""
        template = build_docx([["NIM: {{ni", "m}}"]])

        output = render_template(template, {"nim": "123"})

        assert "NIM: 123" in docx_text(output)

    def test_missing_and_none_values_render_empty(self):
        """Test missing or None values become empty text instead of failing"""
        template = build_docx(["[{{ipk}}] [{{ips}}]"])

        output = render_template(template, {"ipk": None})

        assert "[] []" in docx_text(output)

    def test_non_string_values_stringified(self):
        """Test numbers are rendered with str()"""
        template = build_docx(["Semester {{semester}}"])

        output = render_template(template, {"semester": 5})

        assert "Semester 5" in docx_text(output)

    def test_newlines_become_line_breaks(self):
        """Test values with newlines render as w:br"""
        template = build_docx(["{{alamat}}"])

        output = render_template(template, {"alamat": "Jalan Prof. Soedarto\nTembalang"})
        document_xml = read_part(output, "word/document.xml")

        assert "<w:br/>" in document_xml
        assert "Jalan Prof. Soedarto\nTembalang" in docx_text(output)

    def test_xml_special_characters_escaped(self):
        """Test values with markup characters stay text"""
        template = build_docx(["{{keperluan}}"])

        output = render_template(template, {"keperluan": "Beasiswa <PPA> & BBM"})

        assert "Beasiswa <PPA> & BBM" in docx_text(output)

    def test_header_fields_rendered(self):
        """Test placeholders in header parts are substituted"""
        template = build_docx(["Isi"], header=[["{{kop_", "universitas}}"]])

        output = render_template(template, {"kop_universitas": "UNIVERSITAS DIPONEGORO"})

        assert "UNIVERSITAS DIPONEGORO" in header_text(output)


class TestRenderImages:
    """Test inline picture insertion"""

    def test_image_inserted_with_fixed_size(self):
        """Test a QR image is embedded at 80x80 px"""
        template = build_docx(["{{%qr_code}}"])

        output = render_template(template, {}, {"qr_code": png_base64()})

        document_xml = read_part(output, "word/document.xml")
        rels = read_part(output, "word/_rels/document.xml.rels")
        content_types = read_part(output, "[Content_Types].xml")

        assert "{{%qr_code}}" not in document_xml
        assert "<w:drawing" in document_xml
        assert f'cx="{80 * EMU_PER_PIXEL}"' in document_xml
        media = [n for n in zipfile.ZipFile(io.BytesIO(output)).namelist() if n.startswith("word/media/")]
        assert len(media) == 1 and media[0].endswith(".png")
        assert f'Target="{media[0][len("word/"):]}"' in rels
        assert 'Extension="png"' in content_types

    def test_signature_and_stamp_sizes(self):
        """Test signature is 150x75 and stamp 100x100"""
        template = build_docx(["{{%signature_image}}", "{{%stamp_image}}"])

        output = render_template(template, {}, {"signature_image": png_base64(), "stamp_image": png_base64()})
        document_xml = read_part(output, "word/document.xml")

        assert f'cx="{150 * EMU_PER_PIXEL}" cy="{75 * EMU_PER_PIXEL}"' in document_xml
        assert f'cx="{100 * EMU_PER_PIXEL}" cy="{100 * EMU_PER_PIXEL}"' in document_xml

    def test_missing_image_uses_transparent_pixel(self):
        """Test an image tag without data renders a 1x1 placeholder"""
        template = build_docx(["{{%signature_image}}"])

        output = render_template(template, {})
        document_xml = read_part(output, "word/document.xml")

        assert f'cx="{EMU_PER_PIXEL}" cy="{EMU_PER_PIXEL}"' in document_xml

    def test_unknown_image_tag_default_size(self):
        """Test an unrecognised image tag gets 100x100"""
        template = build_docx(["{{%logo}}"])

        output = render_template(template, {}, {"logo": png_base64()})

        assert f'cx="{100 * EMU_PER_PIXEL}"' in read_part(output, "word/document.xml")

    def test_image_value_from_data(self):
        """Test an image tag falls back to the data mapping"""
        template = build_docx(["{{%qr_code}}"])

        output = render_template(template, {"qr_code": png_base64()})

        assert f'cx="{80 * EMU_PER_PIXEL}"' in read_part(output, "word/document.xml")

    def test_rendered_package_opens(self):
        """Test the output is a valid DOCX python-docx can read"""
        template = build_docx(["Nama {{nama_lengkap}}", "{{%qr_code}} {{%stamp_image}}"])

        output = render_template(template, {"nama_lengkap": "Siti"}, {"qr_code": png_base64(), "stamp_image": png_base64()})

        assert "Nama Siti" in docx_text(output)

    def test_images_in_one_run_get_distinct_ids(self):
        """Test two pictures placed from the same text node do not share a docPr id"""
        template = build_docx(["{{%signature_image}} {{%stamp_image}}"])

        output = render_template(template, {}, {"signature_image": png_base64(), "stamp_image": png_base64(color="blue")})
        document_xml = read_part(output, "word/document.xml")

        ids = re.findall(r'<wp:docPr id="(\d+)"', document_xml)
        assert len(ids) == 2
        assert len(set(ids)) == 2

    def test_unrecognized_image_bytes_use_blank(self):
        """Test base64 that is not an image renders the 1x1 placeholder"""
        template = build_docx(["{{%stamp_image}}"])

        output = render_template(template, {}, {"stamp_image": base64.b64encode(b"not an image").decode("ascii")})

        assert f'cx="{EMU_PER_PIXEL}" cy="{EMU_PER_PIXEL}"' in read_part(output, "word/document.xml")

    def test_header_image(self):
        """Test an image tag in a header is embedded through the header part"""
        template = build_docx(["Isi"], header=["{{%qr_code}}"])

        output = render_template(template, {}, {"qr_code": png_base64()})

        assert "<w:drawing" in read_part(output, "word/header1.xml")
        assert "media/" in read_part(output, "word/_rels/header1.xml.rels")


class TestTemplateErrors:
    """Test error aggregation"""

    def test_all_errors_reported_together(self):
        """Test every malformed tag across the document is reported"""
        template = build_docx(["{{nama lengkap}}", "{{}}", "NIM {{nim", "akhir}}"])

        with pytest.raises(TemplateError) as exc_info:
            TemplateRenderer().render(template, {})

        reasons = [e["reason"] for e in exc_info.value.errors]
        assert "invalid tag name" in reasons
        assert "empty tag" in reasons
        assert "unclosed tag" in reasons
        assert "closing delimiter without opening delimiter" in reasons
        assert all(e["part"] == "word/document.xml" for e in exc_info.value.errors)

    def test_not_a_docx(self):
        """Test garbage input raises TemplateError"""
        with pytest.raises(TemplateError):
            render_template(b"plain text", {})

    def test_broken_xml_names_the_part(self):
        """Test a part that is not well-formed XML is reported instead of rendered"""
        broken = (
            '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
            '<w:body><w:p><w:r><w:t>A & B {{ni</w:t></w:r><w:r><w:t>m}}</w:t></w:r></w:p></w:body></w:document>'
        )
        template = replace_part(build_docx(["x"]), "word/document.xml", broken)

        with pytest.raises(TemplateError) as exc_info:
            render_template(template, {"nim": "123"})

        error = exc_info.value.errors[0]
        assert error["part"] == "word/document.xml"
        assert error["reason"].startswith("invalid XML")


class TestInspectTemplate:
    """Test placeholder inspection"""

    def test_lists_fields_and_images(self):
        """Test inspection reports fields, images and problems per part"""
        template = build_docx(["{{nim}} {{%qr_code}}", "{{}}"])

        report = inspect_template(template)["word/document.xml"]

        assert report["fields"] == ["nim"]
        assert report["images"] == ["qr_code"]
        assert [e["reason"] for e in report["errors"]] == ["empty tag"]
