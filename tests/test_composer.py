import copy
import random

import pytest

from prompt_wizard.answers import FLAG_FIELDS, LIST_FIELDS, TEXT_FIELDS, AnswerSet
from prompt_wizard.catalog import DEFAULT_CATALOG, OTHER_KEY, Catalog
from prompt_wizard.composer import CLOSING_INSTRUCTION, compose


def _random_value(rng: random.Random, kind: str):
    pool_text = ["", "  ", "Build a CRM", "crm", "e-commerce", OTHER_KEY, "React", "Multi\nline", None, 42, 3.5]
    pool_items = list(DEFAULT_CATALOG.security) + list(DEFAULT_CATALOG.colors) + [OTHER_KEY, "Custom", ""]
    if kind == "text":
        return rng.choice(pool_text)
    if kind == "list":
        roll = rng.random()
        if roll < 0.1:
            return rng.choice(pool_items)  # bare string where a list is expected
        if roll < 0.15:
            return {"not": "a list"}
        return rng.sample(pool_items, rng.randint(0, 5))
    return rng.choice([True, False, "true", "no", 0, 1, None])


def _random_answers(rng: random.Random) -> dict:
    answers = {}
    for key in TEXT_FIELDS:
        if rng.random() < 0.6:
            answers[key] = _random_value(rng, "text")
    for key in LIST_FIELDS:
        if rng.random() < 0.6:
            answers[key] = _random_value(rng, "list")
    for key in FLAG_FIELDS:
        if rng.random() < 0.6:
            answers[key] = _random_value(rng, "flag")
    return answers


def test_compose_is_deterministic_and_does_not_mutate_input():
    rng = random.Random(1234)
    for _ in range(200):
        answers = _random_answers(rng)
        before = copy.deepcopy(answers)

        first = compose(answers, DEFAULT_CATALOG)
        second = compose(copy.deepcopy(answers), DEFAULT_CATALOG)

        assert first == second
        assert answers == before


def test_compose_empty_answer_set_is_empty():
    assert compose({}, DEFAULT_CATALOG) == ""
    assert compose(None, DEFAULT_CATALOG) == ""
    assert compose(AnswerSet(), DEFAULT_CATALOG) == ""


def test_objective_only_document():
    doc = compose({"objective": "Build a CRM"}, DEFAULT_CATALOG)
    assert doc == "## Objective\nBuild a CRM\n\n" + CLOSING_INSTRUCTION


def test_other_override_substitutes_companion_text():
    doc = compose({"systemType": OTHER_KEY, "systemTypeCustom": "Quantum Scheduler"}, DEFAULT_CATALOG)
    assert doc.startswith("# Sistema Quantum Scheduler\n\n")
    assert OTHER_KEY not in doc


def test_other_override_with_empty_companion_renders_nothing():
    assert compose({"systemType": OTHER_KEY, "systemTypeCustom": "  "}, DEFAULT_CATALOG) == ""


def test_multi_select_follows_catalog_order():
    catalog = Catalog(security=("A", "B", "C"))
    doc = compose({"securityRequirements": ["C", "A"]}, catalog)
    assert doc == "## Security\n- A\n- C\n\n" + CLOSING_INSTRUCTION


def test_multi_select_companion_comes_last_and_is_not_deduplicated():
    catalog = Catalog(security=("A", "B", "C"))
    doc = compose({"securityRequirements": ["B", "A"], "securityCustom": "A"}, catalog)
    assert "## Security\n- A\n- B\n- A\n\n" in doc


def test_multi_select_other_marker_is_never_rendered():
    catalog = Catalog(restrictions=("No eval",))
    doc = compose({"restrictions": [OTHER_KEY, "No eval"], "restrictionsCustom": "No jQuery"}, catalog)
    assert "## Restrictions\n- No eval\n- No jQuery\n\n" in doc
    assert OTHER_KEY not in doc


def test_specific_features_ordered_by_selected_system_type():
    doc = compose(
        {"systemType": "e-commerce", "specificFeatures": ["Gestão de estoque", "Checkout personalizado"]},
        DEFAULT_CATALOG,
    )
    assert "### Specific Functionalities\n- Checkout personalizado\n- Gestão de estoque\n\n" in doc


def test_specific_features_survive_a_system_type_switch():
    # values picked under e-commerce are kept after switching to crm
    doc = compose(
        {"systemType": "crm", "specificFeatures": ["Gestão de estoque", "Funil de vendas"]},
        DEFAULT_CATALOG,
    )
    assert "### Specific Functionalities\n- Funil de vendas\n- Gestão de estoque\n\n" in doc


def test_composer_output_is_opaque_when_fed_back_as_objective():
    original = compose(
        {"systemType": "crm", "objective": "Track leads", "colors": ["Verde", "Azul"]},
        DEFAULT_CATALOG,
    )
    nested = compose({"objective": original}, DEFAULT_CATALOG)
    assert nested == "## Objective\n" + original + "\n\n" + CLOSING_INSTRUCTION


def test_end_to_end_ecommerce_document():
    answers = {
        "systemType": "e-commerce",
        "objective": "Sell shoes online",
        "securityRequirements": ["Proteção contra SQL Injection, XSS, CSRF"],
    }
    assert compose(answers, DEFAULT_CATALOG) == (
        "# Sistema e-commerce\n\n"
        "## Objective\nSell shoes online\n\n"
        "## Security\n- Proteção contra SQL Injection, XSS, CSRF\n\n"
        + CLOSING_INSTRUCTION
    )


def test_landing_page_is_gated_by_its_toggle():
    answers = {
        "landingPageStructure": ["Hero", "FAQ"],
        "landingPageStyle": "Moderno",
    }
    assert compose(answers, DEFAULT_CATALOG) == ""

    doc = compose(dict(answers, hasLandingPage=True), DEFAULT_CATALOG)
    assert doc == (
        "## Design\n"
        "### Landing Page\nStructure:\n- Hero\n- FAQ\nStyle: Moderno\n\n"
        + CLOSING_INSTRUCTION
    )


def test_landing_page_toggle_alone_renders_nothing():
    assert compose({"hasLandingPage": True, "hasDashboard": True}, DEFAULT_CATALOG) == ""


def test_dashboard_features_gated_by_toggle():
    answers = {"dashboardFeatures": ["Estatísticas"], "hasDashboard": "yes"}
    doc = compose(answers, DEFAULT_CATALOG)
    assert "### Dashboard\n- Estatísticas\n\n" in doc


def test_tech_stack_fullstack_versus_separate():
    answers = {"frontend": "React", "backend": "Django", "fullstack": "Next.js", "database": "PostgreSQL"}

    joined = compose(answers, DEFAULT_CATALOG)
    assert joined == "## Tech Stack\n### Fullstack\nNext.js\n\n### Database\nPostgreSQL\n\n" + CLOSING_INSTRUCTION

    split = compose(dict(answers, separateFrontendBackend=True), DEFAULT_CATALOG)
    assert split == (
        "## Tech Stack\n### Frontend\nReact\n\n### Backend\nDjango\n\n### Database\nPostgreSQL\n\n"
        + CLOSING_INSTRUCTION
    )


def test_sections_render_in_document_order():
    answers = {
        "restrictions": ["Não usar eval"],
        "bestPractices": ["Stateless"],
        "securityRequirements": ["HTTPS obrigatório"],
        "orm": "Prisma",
        "authType": "E-mail e senha",
        "generalFeatures": ["Notificações"],
        "objective": "Do things",
        "systemType": "saas",
    }
    doc = compose(answers, DEFAULT_CATALOG)
    headings = [line for line in doc.splitlines() if line.startswith("#")]
    assert headings == [
        "# Sistema saas",
        "## Objective",
        "## Functionalities",
        "### General Functionalities",
        "## Design",
        "### Authentication",
        "## Tech Stack",
        "### ORM",
        "## Security",
        "## Code Structure",
        "### Best Practices",
        "## Restrictions",
    ]
    assert doc.endswith(CLOSING_INSTRUCTION)


@pytest.mark.parametrize("answers", [
    {"objective": None, "colors": None},
    {"colors": 7, "systemType": ["list", "not", "text"]},
    {"securityRequirements": "Logs de auditoria"},
    {"hasLandingPage": "maybe", "landingPageElements": {"a": 1}},
    "not a mapping",
    42,
])
def test_malformed_input_never_raises(answers):
    assert isinstance(compose(answers, DEFAULT_CATALOG), str)


def test_bare_string_treated_as_single_selection():
    doc = compose({"securityRequirements": "Logs de auditoria"}, DEFAULT_CATALOG)
    assert "## Security\n- Logs de auditoria\n\n" in doc


def test_answer_set_model_and_mapping_render_identically():
    payload = {"systemType": "crm", "objective": " Track leads ", "colors": ["Azul"], "hasDashboard": "on"}
    assert compose(AnswerSet.from_payload(payload), DEFAULT_CATALOG) == compose(payload, DEFAULT_CATALOG)


def test_snake_case_keys_render_like_wire_names():
    camel = {"systemType": "crm", "securityRequirements": ["HTTPS obrigatório"], "hasDashboard": True,
             "dashboardFeatures": ["Estatísticas"]}
    snake = {"system_type": "crm", "security_requirements": ["HTTPS obrigatório"], "has_dashboard": True,
             "dashboard_features": ["Estatísticas"]}
    assert compose(snake, DEFAULT_CATALOG) == compose(camel, DEFAULT_CATALOG)


def test_composer_output_is_opaque_inside_a_custom_field():
    original = compose(
        {"systemType": "crm", "objective": "Track leads", "restrictions": ["Não usar eval"]},
        DEFAULT_CATALOG,
    )
    nested = compose({"securityCustom": original}, DEFAULT_CATALOG)
    assert nested == "## Security\n- " + original + "\n\n" + CLOSING_INSTRUCTION


def test_switching_system_type_back_restores_original_document():
    selected = ["Gestão de estoque", "Checkout personalizado"]
    as_ecommerce = {"systemType": "e-commerce", "specificFeatures": selected}
    before = compose(as_ecommerce, DEFAULT_CATALOG)

    as_crm = compose(dict(as_ecommerce, systemType="crm"), DEFAULT_CATALOG)
    assert "- Gestão de estoque\n- Checkout personalizado\n" in as_crm

    after = compose(dict(as_ecommerce, systemType="e-commerce"), DEFAULT_CATALOG)
    assert after == before
    assert "### Specific Functionalities\n- Checkout personalizado\n- Gestão de estoque\n\n" in after
