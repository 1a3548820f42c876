"""
Template data preparation.

Form values arrive with inconsistent key naming (camelCase from the web form,
snake_case from imports, a few legacy names). Each logical field lists its
accepted keys in priority order, and the first non-empty value wins. This is
the only place where that aliasing happens; the renderer only ever sees the
canonical names below.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from app.core.config import settings
from app.core.exceptions import MissingTemplateFieldsError


FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "nama_lengkap": ("namaLengkap", "nama_lengkap", "nama"),
    "nim": ("nim",),
    "tempat_lahir": ("tempatLahir", "tempat_lahir"),
    "tanggal_lahir": ("tanggalLahir", "tanggal_lahir"),
    "no_hp": ("noHp", "no_hp"),
    "program_studi": ("programStudi", "program_studi", "prodi"),
    "semester": ("semester",),
    "ipk": ("ipk",),
    "ips": ("ips",),
    "jurusan": ("departemen", "jurusan"),
    "tahun_akademik": ("tahunAkademik", "tahun_akademik"),
    "jenis_beasiswa": ("jenisBeasiswa", "jenis_beasiswa"),
    "nama_beasiswa": ("namaBeasiswa", "nama_beasiswa"),
}

REQUIRED_FIELDS: Tuple[str, ...] = (
    "nama_lengkap",
    "nim",
    "tempat_lahir",
    "tanggal_lahir",
    "no_hp",
    "program_studi",
    "semester",
    "ipk",
    "ips",
)

FIELD_LABELS: Dict[str, str] = {
    "nama_lengkap": "Nama Lengkap",
    "nim": "NIM",
    "tempat_lahir": "Tempat Lahir",
    "tanggal_lahir": "Tanggal Lahir",
    "no_hp": "No. HP",
    "program_studi": "Program Studi",
    "semester": "Semester",
    "ipk": "IPK",
    "ips": "IPS",
}

INDONESIAN_MONTHS = (
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def unwrap_form_values(values: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Form values may be stored flat or under a formData envelope"""
    values = values or {}
    nested = values.get("formData")
    return nested if isinstance(nested, Mapping) else values


def resolve_field(values: Mapping[str, Any], field: str) -> Optional[Any]:
    """First non-empty value among the field's aliases"""
    for key in FIELD_ALIASES.get(field, (field,)):
        value = values.get(key)
        if not is_blank(value):
            return value.strip() if isinstance(value, str) else value
    return None


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def format_indonesian_date(value: Any) -> str:
    """5 Desember 2025; unparsable strings are returned as given"""
    parsed = _parse_date(value)
    if parsed is None:
        return "" if value is None else str(value)
    return f"{parsed.day} {INDONESIAN_MONTHS[parsed.month - 1]} {parsed.year}"


def derive_keperluan(jenis_beasiswa: Optional[str], nama_beasiswa: Optional[str]) -> str:
    if not is_blank(jenis_beasiswa):
        return f"Pengajuan Beasiswa {jenis_beasiswa}"
    if not is_blank(nama_beasiswa):
        return f"Pengajuan {nama_beasiswa}"
    return "Pengajuan Beasiswa"


def blank_letter_number() -> str:
    """Letter number line shown before a number is assigned"""
    return f"/{settings.LETTER_ORG_CODE}/KM/……/20…"


def build_template_data(
    form_values: Optional[Mapping[str, Any]],
    *,
    letter_number: Optional[str] = None,
    scholarship_name: Optional[str] = None,
    issued_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build the canonical template data for one letter.

    Args:
        form_values: Application form values (flat or under formData)
        letter_number: Assigned letter number, if any
        scholarship_name: Scholarship name stored on the application
        issued_at: Publication timestamp, used for the issue date
        now: Clock override

    Returns:
        Field name -> value mapping for the renderer
    """
    now = now or datetime.now()
    values = unwrap_form_values(form_values)
    resolved = {field: resolve_field(values, field) for field in FIELD_ALIASES}

    tahun_akademik = resolved["tahun_akademik"] or f"{now.year}/{now.year + 1}"
    nama_beasiswa = resolved["nama_beasiswa"] or scholarship_name

    data: Dict[str, Any] = {
        "kop_kementerian": settings.KOP_KEMENTERIAN,
        "kop_universitas": settings.KOP_UNIVERSITAS,
        "kop_fakultas": settings.KOP_FAKULTAS,
        "kop_alamat": settings.KOP_ALAMAT,
        "kop_telepon": settings.KOP_TELEPON,
        "kop_website": settings.KOP_WEBSITE,
        "kop_email": settings.KOP_EMAIL,
        "judul_surat": settings.JUDUL_SURAT,
        "nomor_surat": letter_number or blank_letter_number(),
        "nama_lengkap": resolved["nama_lengkap"],
        "nim": resolved["nim"],
        "tempat_lahir": resolved["tempat_lahir"],
        "tanggal_lahir": format_indonesian_date(resolved["tanggal_lahir"]) if resolved["tanggal_lahir"] else None,
        "no_hp": resolved["no_hp"],
        "tahun_akademik": tahun_akademik,
        "jurusan": resolved["jurusan"],
        "program_studi": resolved["program_studi"],
        "semester": resolved["semester"],
        "ipk": resolved["ipk"],
        "ips": resolved["ips"],
        "keperluan": derive_keperluan(resolved["jenis_beasiswa"], nama_beasiswa),
        "tanggal_terbit": format_indonesian_date(issued_at or now),
        "jabatan_penandatangan": settings.SIGNER_TITLE,
        "nama_penandatangan": settings.SIGNER_NAME,
        "nip_penandatangan": settings.SIGNER_NIP,
    }
    return data


def missing_required_fields(data: Mapping[str, Any]) -> List[str]:
    """Labels of required fields that did not resolve to a value"""
    return [FIELD_LABELS[field] for field in REQUIRED_FIELDS if is_blank(data.get(field))]


def validate_template_data(data: Mapping[str, Any]) -> None:
    """Raise MissingTemplateFieldsError listing every unresolved required field"""
    missing = missing_required_fields(data)
    if missing:
        raise MissingTemplateFieldsError(missing)
