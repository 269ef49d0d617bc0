# prompt_wizard/answers.py
import json
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from prompt_wizard.catalog import OTHER_KEY

_TRUE_STRINGS = {"true", "1", "yes", "on"}

TEXT_FIELDS = (
    "systemType", "systemTypeCustom", "objective",
    "generalFeaturesCustom", "specificFeaturesCustom",
    "customColor", "visualStyle", "visualStyleCustom", "menuType", "menuTypeCustom",
    "landingPageStructureCustom", "landingPageElementsCustom",
    "landingPageStyle", "landingPageStyleCustom",
    "authType", "authTypeCustom", "dashboardFeaturesCustom",
    "frontend", "frontendCustom", "backend", "backendCustom",
    "fullstack", "fullstackCustom", "database", "databaseCustom",
    "orm", "ormCustom", "deploy", "deployCustom",
    "securityCustom",
    "folderOrganization", "folderOrganizationCustom",
    "architecturePattern", "architecturePatternCustom",
    "bestPracticesCustom", "restrictionsCustom",
)
LIST_FIELDS = (
    "generalFeatures", "specificFeatures", "colors",
    "landingPageStructure", "landingPageElements", "dashboardFeatures",
    "securityRequirements", "bestPractices", "restrictions",
)
FLAG_FIELDS = ("hasLandingPage", "hasDashboard", "separateFrontendBackend")


# -----------------------
# Lenient readers
# -----------------------

def coerce_text(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def coerce_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    elif isinstance(value, (Mapping, bytes, bytearray)) or not isinstance(value, Iterable):
        return []
    out: List[str] = []
    for item in value:
        text = coerce_text(item)
        if text:
            out.append(text)
    return out


def coerce_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def read_text(answers: Mapping, key: str) -> str:
    return coerce_text(answers.get(key))


def read_list(answers: Mapping, key: str) -> List[str]:
    return coerce_list(answers.get(key))


def read_flag(answers: Mapping, key: str) -> bool:
    return coerce_flag(answers.get(key))


def resolve_choice(answers: Mapping, key: str, custom_key: str) -> str:
    """
    Single-select value after the "other" override: the reserved key is
    replaced by its companion text, anything else is used verbatim.
    """
    value = read_text(answers, key)
    if value == OTHER_KEY:
        return read_text(answers, custom_key)
    return value


def resolve_multi(selected: List[str], catalog_order: Iterable[str], custom: str) -> List[str]:
    """
    Members of a multi-select in display order: catalog entries in catalog
    order, then stored values unknown to the catalog in stored order, then the
    free-text companion (never deduplicated against the others).
    """
    chosen = [v for v in selected if v != OTHER_KEY]
    chosen_set = set(chosen)

    ordered: List[str] = []
    seen = set()
    for entry in catalog_order:
        if entry in chosen_set and entry not in seen:
            ordered.append(entry)
            seen.add(entry)
    for value in chosen:
        if value not in seen:
            ordered.append(value)
            seen.add(value)
    if custom:
        ordered.append(custom)
    return ordered


def snapshot(answers: Any) -> Mapping[str, Any]:
    """
    Read-only view over an Answer Set given as an AnswerSet model, a mapping,
    or nothing at all. Mappings are normalised through AnswerSet first, so
    camelCase and snake_case keys read the same everywhere.
    """
    if not isinstance(answers, AnswerSet):
        answers = AnswerSet.from_payload(answers)
    return MappingProxyType(answers.model_dump(by_alias=True))


# -----------------------
# Answer Set model
# -----------------------

class AnswerSet(BaseModel):
    """
    The wizard's form state. Wire names are camelCase; every field is
    optional and malformed values are coerced to their empty form instead of
    being rejected.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    system_type: str = Field("", alias="systemType")
    system_type_custom: str = Field("", alias="systemTypeCustom")
    objective: str = ""

    general_features: List[str] = Field(default_factory=list, alias="generalFeatures")
    general_features_custom: str = Field("", alias="generalFeaturesCustom")
    specific_features: List[str] = Field(default_factory=list, alias="specificFeatures")
    specific_features_custom: str = Field("", alias="specificFeaturesCustom")

    colors: List[str] = Field(default_factory=list)
    custom_color: str = Field("", alias="customColor")
    visual_style: str = Field("", alias="visualStyle")
    visual_style_custom: str = Field("", alias="visualStyleCustom")
    menu_type: str = Field("", alias="menuType")
    menu_type_custom: str = Field("", alias="menuTypeCustom")

    has_landing_page: bool = Field(False, alias="hasLandingPage")
    landing_page_structure: List[str] = Field(default_factory=list, alias="landingPageStructure")
    landing_page_structure_custom: str = Field("", alias="landingPageStructureCustom")
    landing_page_elements: List[str] = Field(default_factory=list, alias="landingPageElements")
    landing_page_elements_custom: str = Field("", alias="landingPageElementsCustom")
    landing_page_style: str = Field("", alias="landingPageStyle")
    landing_page_style_custom: str = Field("", alias="landingPageStyleCustom")

    auth_type: str = Field("", alias="authType")
    auth_type_custom: str = Field("", alias="authTypeCustom")

    has_dashboard: bool = Field(False, alias="hasDashboard")
    dashboard_features: List[str] = Field(default_factory=list, alias="dashboardFeatures")
    dashboard_features_custom: str = Field("", alias="dashboardFeaturesCustom")

    separate_frontend_backend: bool = Field(False, alias="separateFrontendBackend")
    frontend: str = ""
    frontend_custom: str = Field("", alias="frontendCustom")
    backend: str = ""
    backend_custom: str = Field("", alias="backendCustom")
    fullstack: str = ""
    fullstack_custom: str = Field("", alias="fullstackCustom")
    database: str = ""
    database_custom: str = Field("", alias="databaseCustom")
    orm: str = ""
    orm_custom: str = Field("", alias="ormCustom")
    deploy: str = ""
    deploy_custom: str = Field("", alias="deployCustom")

    security_requirements: List[str] = Field(default_factory=list, alias="securityRequirements")
    security_custom: str = Field("", alias="securityCustom")

    folder_organization: str = Field("", alias="folderOrganization")
    folder_organization_custom: str = Field("", alias="folderOrganizationCustom")
    architecture_pattern: str = Field("", alias="architecturePattern")
    architecture_pattern_custom: str = Field("", alias="architecturePatternCustom")
    best_practices: List[str] = Field(default_factory=list, alias="bestPractices")
    best_practices_custom: str = Field("", alias="bestPracticesCustom")

    restrictions: List[str] = Field(default_factory=list)
    restrictions_custom: str = Field("", alias="restrictionsCustom")

    @field_validator(
        "general_features", "specific_features", "colors",
        "landing_page_structure", "landing_page_elements", "dashboard_features",
        "security_requirements", "best_practices", "restrictions",
        mode="before",
    )
    @classmethod
    def _lenient_list(cls, value):
        return coerce_list(value)

    @field_validator("has_landing_page", "has_dashboard", "separate_frontend_backend", mode="before")
    @classmethod
    def _lenient_flag(cls, value):
        return coerce_flag(value)

    @field_validator("*", mode="before")
    @classmethod
    def _lenient_text(cls, value, info):
        if info.field_name in _MODEL_LIST_FIELDS or info.field_name in _MODEL_FLAG_FIELDS:
            return value
        return coerce_text(value)

    @classmethod
    def from_payload(cls, payload: Optional[Mapping]) -> "AnswerSet":
        if not isinstance(payload, Mapping):
            return cls()
        return cls.model_validate(dict(payload))

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True), ensure_ascii=False, indent=2)


_MODEL_LIST_FIELDS = {
    "general_features", "specific_features", "colors",
    "landing_page_structure", "landing_page_elements", "dashboard_features",
    "security_requirements", "best_practices", "restrictions",
}
_MODEL_FLAG_FIELDS = {"has_landing_page", "has_dashboard", "separate_frontend_backend"}
