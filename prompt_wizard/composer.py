# prompt_wizard/composer.py
"""
Prompt composer.

Turns an Answer Set into the Markdown prompt shown in the preview. The document
is described by an ordered table of `Section` descriptors; one routine walks
the table and emits a section only when something inside it renders. The
composer is pure: same answers and catalog in, byte-identical text out, and no
input can make it raise.
"""
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, Union

from prompt_wizard.answers import (
    read_flag,
    read_list,
    read_text,
    resolve_choice,
    resolve_multi,
    snapshot,
)
from prompt_wizard.catalog import Catalog, get_catalog

Rule = Callable[[Mapping, Catalog], List[str]]
Gate = Callable[[Mapping], bool]
CatalogSource = Union[str, Callable[[Mapping, Catalog], Iterable[str]]]

CLOSING_INSTRUCTION = (
    "Please generate the complete code following all of the specifications above, "
    "applying best practices, proper error handling and explanatory comments where necessary."
)


@dataclass(frozen=True)
class Section:
    title: str
    level: int
    rule: Optional[Rule] = None
    parts: Tuple["Section", ...] = ()
    gate: Optional[Gate] = None
    # inline sections carry their single value in the heading itself
    inline: bool = False


# -----------------------
# Rules
# -----------------------

def text(key: str) -> Rule:
    def _rule(answers: Mapping, catalog: Catalog) -> List[str]:
        value = read_text(answers, key)
        return [value] if value else []
    return _rule


def choice(key: str, custom_key: str) -> Rule:
    def _rule(answers: Mapping, catalog: Catalog) -> List[str]:
        value = resolve_choice(answers, key, custom_key)
        return [value] if value else []
    return _rule


def multi(key: str, custom_key: str, source: CatalogSource) -> Rule:
    def _rule(answers: Mapping, catalog: Catalog) -> List[str]:
        if callable(source):
            order = source(answers, catalog)
        else:
            order = getattr(catalog, source, ())
        members = resolve_multi(
            read_list(answers, key),
            order,
            read_text(answers, custom_key),
        )
        return [f"- {m}" for m in members]
    return _rule


def labeled(*groups: Tuple[str, Rule, bool]) -> Rule:
    """
    Several sub-groups under one heading, each introduced by its own label.
    Inline groups put their value after the label ("Style: Moderno").
    """
    def _rule(answers: Mapping, catalog: Catalog) -> List[str]:
        out: List[str] = []
        for label, rule, inline in groups:
            lines = rule(answers, catalog)
            if not lines:
                continue
            if inline:
                out.append(f"{label} {lines[0]}")
            else:
                out.append(label)
                out.extend(lines)
        return out
    return _rule


def flag(key: str) -> Gate:
    return lambda answers: read_flag(answers, key)


def not_flag(key: str) -> Gate:
    return lambda answers: not read_flag(answers, key)


def _specific_features_order(answers: Mapping, catalog: Catalog) -> Iterable[str]:
    return catalog.specific_features_for(read_text(answers, "systemType"))


# -----------------------
# Document table
# -----------------------

TITLE = Section("Sistema", 1, rule=choice("systemType", "systemTypeCustom"), inline=True)

OBJECTIVE = Section("Objective", 2, rule=text("objective"))

FUNCTIONALITIES = Section("Functionalities", 2, parts=(
    Section("General Functionalities", 3,
            rule=multi("generalFeatures", "generalFeaturesCustom", "general_features")),
    Section("Specific Functionalities", 3,
            rule=multi("specificFeatures", "specificFeaturesCustom", _specific_features_order)),
))

LANDING_PAGE = Section("Landing Page", 3, gate=flag("hasLandingPage"), rule=labeled(
    ("Structure:", multi("landingPageStructure", "landingPageStructureCustom", "landing_page_structure"), False),
    ("Elements:", multi("landingPageElements", "landingPageElementsCustom", "landing_page_elements"), False),
    ("Style:", choice("landingPageStyle", "landingPageStyleCustom"), True),
))

DASHBOARD = Section("Dashboard", 3, gate=flag("hasDashboard"),
                    rule=multi("dashboardFeatures", "dashboardFeaturesCustom", "dashboard_features"))

DESIGN = Section("Design", 2, parts=(
    Section("Colors", 3, rule=multi("colors", "customColor", "colors")),
    Section("Visual Style", 3, rule=choice("visualStyle", "visualStyleCustom")),
    Section("Menu Type", 3, rule=choice("menuType", "menuTypeCustom")),
    LANDING_PAGE,
    Section("Authentication", 3, rule=choice("authType", "authTypeCustom")),
    DASHBOARD,
))

TECH_STACK = Section("Tech Stack", 2, parts=(
    Section("Frontend", 3, gate=flag("separateFrontendBackend"), rule=choice("frontend", "frontendCustom")),
    Section("Backend", 3, gate=flag("separateFrontendBackend"), rule=choice("backend", "backendCustom")),
    Section("Fullstack", 3, gate=not_flag("separateFrontendBackend"), rule=choice("fullstack", "fullstackCustom")),
    Section("Database", 3, rule=choice("database", "databaseCustom")),
    Section("ORM", 3, rule=choice("orm", "ormCustom")),
    Section("Deploy", 3, rule=choice("deploy", "deployCustom")),
))

SECURITY = Section("Security", 2, rule=multi("securityRequirements", "securityCustom", "security"))

CODE_STRUCTURE = Section("Code Structure", 2, parts=(
    Section("Folder Organization", 3, rule=choice("folderOrganization", "folderOrganizationCustom")),
    Section("Architecture Pattern", 3, rule=choice("architecturePattern", "architecturePatternCustom")),
    Section("Best Practices", 3, rule=multi("bestPractices", "bestPracticesCustom", "best_practices")),
))

RESTRICTIONS = Section("Restrictions", 2, rule=multi("restrictions", "restrictionsCustom", "restrictions"))

DOCUMENT: Tuple[Section, ...] = (
    TITLE,
    OBJECTIVE,
    FUNCTIONALITIES,
    DESIGN,
    TECH_STACK,
    SECURITY,
    CODE_STRUCTURE,
    RESTRICTIONS,
)


# -----------------------
# Emission
# -----------------------

def render_section(section: Section, answers: Mapping, catalog: Catalog) -> str:
    if section.gate is not None and not section.gate(answers):
        return ""

    heading = "#" * section.level + " " + section.title

    if section.rule is not None:
        lines = section.rule(answers, catalog)
        if not lines:
            return ""
        if section.inline:
            return f"{heading} {lines[0]}\n\n"
        return heading + "\n" + "\n".join(lines) + "\n\n"

    body = "".join(render_section(part, answers, catalog) for part in section.parts)
    if not body:
        return ""
    return heading + "\n" + body


def compose(answers: Any, catalog: Optional[Catalog] = None) -> str:
    snap = snapshot(answers)
    catalog = catalog or get_catalog()

    body = "".join(render_section(section, snap, catalog) for section in DOCUMENT)
    if not body:
        return ""
    return body + CLOSING_INSTRUCTION
