"""
Template Registry

Loads the template configuration from templates.yml and keeps the
document_templates table in step with it, so templates can be switched
without code changes.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging_config import logger
from app.models.document_template import DocumentTemplate


DEFAULT_REGISTRY_PATH = Path(__file__).parent / "templates.yml"


@dataclass
class TemplateConfig:
    key: str
    name: str
    path: str
    letter_type_code: str
    description: str = ""
    is_active: bool = True


@dataclass
class LetterTypeTemplates:
    slug: str
    letter_type_code: str
    display_name: str
    default_template: str
    templates: List[TemplateConfig] = field(default_factory=list)

    def get(self, key: str) -> Optional[TemplateConfig]:
        return next((t for t in self.templates if t.key == key), None)


class TemplateRegistry:
    """Template configuration loaded from YAML"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else DEFAULT_REGISTRY_PATH
        if not self.config_path.exists():
            raise FileNotFoundError(f"Template registry not found: {self.config_path}")
        self.letter_types = self._load()

    def _load(self) -> Dict[str, LetterTypeTemplates]:
        with open(self.config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

        letter_types: Dict[str, LetterTypeTemplates] = {}
        for slug, data in (config.get("letter_types") or {}).items():
            code = data["letter_type_code"]
            templates = [
                TemplateConfig(
                    key=item["key"],
                    name=item["name"],
                    path=item["path"],
                    letter_type_code=code,
                    description=item.get("description", ""),
                    is_active=item.get("is_active", True),
                )
                for item in data.get("templates", [])
            ]
            letter_type = LetterTypeTemplates(
                slug=slug,
                letter_type_code=code,
                display_name=data.get("display_name", slug),
                default_template=data["default_template"],
                templates=templates,
            )
            if letter_type.get(letter_type.default_template) is None:
                raise ValueError(f"Default template '{letter_type.default_template}' of {slug} is not listed")
            letter_types[slug] = letter_type
            logger.info(f"[TemplateRegistry] Loaded {len(templates)} template(s) for {slug}")

        return letter_types

    def all_templates(self) -> List[TemplateConfig]:
        return [t for letter_type in self.letter_types.values() for t in letter_type.templates]

    def default_for(self, letter_type_code: str) -> Optional[TemplateConfig]:
        for letter_type in self.letter_types.values():
            if letter_type.letter_type_code == letter_type_code:
                return letter_type.get(letter_type.default_template)
        return None

    async def sync(self, db: AsyncSession) -> int:
        """Insert or update document_templates rows from the registry"""
        synced = 0
        for config in self.all_templates():
            result = await db.execute(select(DocumentTemplate).where(DocumentTemplate.key == config.key))
            template = result.scalar_one_or_none()
            if template is None:
                template = DocumentTemplate(key=config.key)
                db.add(template)
            template.name = config.name
            template.file_path = config.path
            template.description = config.description
            template.letter_type_code = config.letter_type_code
            template.is_active = config.is_active
            synced += 1

        await db.commit()
        logger.info(f"[TemplateRegistry] Synced {synced} template(s)")
        return synced
