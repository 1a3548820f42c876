"""
Tests for the maintenance CLI
"""
import json
import os
import time

from app.cli import main
from app.core.config import settings
from conftest import LETTER_PARAGRAPHS, build_docx, docx_text, read_part, sample_form_values


class TestRepairCommand:
    """Tests for `surat-engine repair`"""

    def test_repair_writes_fixed_copy(self, tmp_path):
        """A template with split tags is written next to the source"""
        source = tmp_path / "template.docx"
        source.write_bytes(build_docx(LETTER_PARAGRAPHS))

        assert main(["repair", str(source)]) == 0

        fixed = tmp_path / "template-fixed.docx"
        assert "{{nama_lengkap}}" in read_part(fixed.read_bytes(), "word/document.xml")

    def test_repair_clean_template_writes_nothing(self, tmp_path):
        source = tmp_path / "clean.docx"
        source.write_bytes(build_docx(["NIM: {{nim}}"]))

        assert main(["repair", str(source), "-o", str(tmp_path / "out.docx")]) == 0
        assert not (tmp_path / "out.docx").exists()


class TestInspectCommand:
    """Tests for `surat-engine inspect`"""

    def test_inspect_clean(self, tmp_path):
        source = tmp_path / "clean.docx"
        source.write_bytes(build_docx(["NIM: {{nim}}", "{{%qr_code}}"]))
        assert main(["inspect", str(source)]) == 0

    def test_inspect_problems(self, tmp_path):
        source = tmp_path / "broken.docx"
        source.write_bytes(build_docx(["{{}}"]))
        assert main(["inspect", str(source)]) == 1


class TestRenderCommand:
    """Tests for `surat-engine render`"""

    def test_render(self, tmp_path):
        template = tmp_path / "template.docx"
        template.write_bytes(build_docx(LETTER_PARAGRAPHS))
        data = tmp_path / "data.json"
        data.write_text(json.dumps(sample_form_values(namaLengkap="Siti Aminah")), encoding="utf-8")
        output = tmp_path / "out.docx"

        code = main([
            "render", str(template), str(data), "-o", str(output),
            "--letter-number", "001/ORG/KM/I/2026",
        ])

        assert code == 0
        text = docx_text(output.read_bytes())
        assert "Nama: Siti Aminah" in text
        assert "Nomor: 001/ORG/KM/I/2026" in text

    def test_render_template_error(self, tmp_path):
        template = tmp_path / "broken.docx"
        template.write_bytes(build_docx(["{{}}"]))
        data = tmp_path / "data.json"
        data.write_text("{}", encoding="utf-8")

        assert main(["render", str(template), str(data), "-o", str(tmp_path / "out.docx")]) == 1


def test_cleanup_temp_command():
    """Scratch files older than --max-age are removed"""
    scratch = settings.TEMP_DIR / "stamp_1.png"
    scratch.write_bytes(b"x")
    an_hour_ago = time.time() - 3600
    os.utime(scratch, (an_hour_ago, an_hour_ago))

    assert main(["cleanup-temp", "--max-age", "60"]) == 0
    assert not scratch.exists()
