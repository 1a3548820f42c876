from app.services.template.ooxml_repair import repair_docx, RepairResult
from app.services.template.renderer import TemplateRenderer, render_template
from app.services.template.images import Base64ImageResolver, ImageResolver
from app.services.template.digital_features import (
    DigitalFeatureComposer,
    DigitalFeatures,
    digital_feature_composer,
)
from app.services.template.template_data import (
    build_template_data,
    resolve_field,
    unwrap_form_values,
    validate_template_data,
)

__all__ = [
    "repair_docx",
    "RepairResult",
    "TemplateRenderer",
    "render_template",
    "Base64ImageResolver",
    "ImageResolver",
    "DigitalFeatureComposer",
    "DigitalFeatures",
    "digital_feature_composer",
    "build_template_data",
    "resolve_field",
    "unwrap_form_values",
    "validate_template_data",
]
