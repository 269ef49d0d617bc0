# prompt_wizard/catalog.py
from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Tuple

import commentjson

from prompt_wizard.db_helpers import CATALOG_PATH, logger

OTHER_KEY = "outro"


@dataclass(frozen=True)
class Catalog:
    """
    Ordered option lists offered by the wizard.

    The composer treats these as configuration: a multi-select renders its
    members in the order they are declared here. `specific_features` maps a
    system type value to the ordered options offered for that type.
    """
    system_types: Tuple[str, ...] = ()
    general_features: Tuple[str, ...] = ()
    specific_features: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    colors: Tuple[str, ...] = ()
    visual_styles: Tuple[str, ...] = ()
    menu_types: Tuple[str, ...] = ()
    landing_page_structure: Tuple[str, ...] = ()
    landing_page_elements: Tuple[str, ...] = ()
    landing_page_styles: Tuple[str, ...] = ()
    auth_types: Tuple[str, ...] = ()
    dashboard_features: Tuple[str, ...] = ()
    frontend: Tuple[str, ...] = ()
    backend: Tuple[str, ...] = ()
    fullstack: Tuple[str, ...] = ()
    databases: Tuple[str, ...] = ()
    orms: Tuple[str, ...] = ()
    deploys: Tuple[str, ...] = ()
    security: Tuple[str, ...] = ()
    folder_organization: Tuple[str, ...] = ()
    architecture_patterns: Tuple[str, ...] = ()
    best_practices: Tuple[str, ...] = ()
    restrictions: Tuple[str, ...] = ()

    def specific_features_for(self, system_type: str) -> Tuple[str, ...]:
        return self.specific_features.get(system_type or "", ())

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, dict):
                out[f.name] = {k: list(v) for k, v in value.items()}
            else:
                out[f.name] = list(value)
        return out


DEFAULT_CATALOG = Catalog(
    system_types=(
        "micro-saas", "saas", "erp", "crm", "e-commerce", "cms", "api-backend",
        "app-mobile", "agendamento", "helpdesk", "plataforma-educacional",
        "streaming", "pagina-estatica", OTHER_KEY,
    ),
    general_features=(
        "Upload de arquivos",
        "Notificações",
        "Filtros avançados",
        "Dashboards interativos",
        "Agendamento",
        "Exportação de dados",
        "Permissões por perfil",
        "Integração com APIs",
        "Multi-idioma",
        "Acessibilidade",
        "Modo escuro",
    ),
    specific_features={
        "e-commerce": (
            "Checkout personalizado",
            "Gateways de pagamento",
            "Gestão de estoque",
            "Cálculo de frete",
            "Carrinho abandonado",
            "Promoções e cupons",
        ),
        "api-backend": (
            "Autenticação",
            "Multi-tenancy",
            "Documentação da API",
            "Versionamento da API",
            "Webhooks",
        ),
        "crm": (
            "Funil de vendas",
            "Segmentação de clientes",
            "Integração com e-mail",
            "Dashboard de desempenho",
            "Tarefas e lembretes",
        ),
        "saas": (
            "Planos e assinaturas",
            "Onboarding de usuários",
            "Multi-tenancy",
            "Dashboards interativos",
        ),
        "micro-saas": (
            "Planos e assinaturas",
            "Login social",
            "Landing page integrada",
        ),
        "app-mobile": (
            "Notificações push",
            "Modo offline",
            "Geolocalização",
        ),
        "agendamento": (
            "Agendamento com lembretes",
            "Calendário de disponibilidade",
            "Pagamento antecipado",
        ),
    },
    colors=(
        "Azul", "Verde", "Vermelho", "Roxo", "Laranja", "Preto", "Branco", "Cinza",
    ),
    visual_styles=("Minimalista", "Moderno", "Flat", "iOS", "Android", OTHER_KEY),
    menu_types=(
        "Superior fixo", "Lateral fixo", "Hambúrguer", "Abas horizontais", OTHER_KEY,
    ),
    landing_page_structure=(
        "Hero", "Benefícios", "Depoimentos", "Preços", "FAQ", "Contato",
    ),
    landing_page_elements=(
        "Vídeo de apresentação", "Animações", "Chamada para ação", "Formulário de captura",
    ),
    landing_page_styles=("Minimalista", "Corporativo", "Criativo", OTHER_KEY),
    auth_types=(
        "E-mail e senha", "Login social", "Autenticação em dois fatores", OTHER_KEY,
    ),
    dashboard_features=(
        "Personalizável", "Estatísticas", "Histórico de atividades", "Temas responsivos",
    ),
    frontend=(
        "React", "Next.js", "Vue.js", "Angular", "Svelte", OTHER_KEY,
    ),
    backend=(
        "Node.js", "Express", "NestJS", "Django", "Flask", "Laravel",
        ".NET Core", "Spring Boot", "Go", OTHER_KEY,
    ),
    fullstack=(
        "Next.js", "Remix", "Nuxt.js", "Blitz.js", "RedwoodJS", "Meteor", OTHER_KEY,
    ),
    databases=(
        "PostgreSQL", "MySQL", "MongoDB", "SQLite", "Supabase", "Firebase", "Redis", OTHER_KEY,
    ),
    orms=("Prisma", "Sequelize", "Mongoose", "TypeORM", "Hibernate", OTHER_KEY),
    deploys=(
        "Vercel", "Netlify", "Heroku", "AWS", "Google Cloud", "Azure", "DigitalOcean", OTHER_KEY,
    ),
    security=(
        "Proteção contra SQL Injection, XSS, CSRF",
        "Autenticação segura",
        "HTTPS obrigatório",
        "Logs de auditoria",
        "Segurança de API (rate limiting, tokens)",
    ),
    folder_organization=(
        "Por funcionalidade", "Por domínio", "Separação front/back", "Modular com DI", OTHER_KEY,
    ),
    architecture_patterns=(
        "MVC", "MVVM", "Clean Architecture", "DDD", "Hexagonal", OTHER_KEY,
    ),
    best_practices=(
        "Stateless", "Baixo acoplamento", "Testes automatizados", "Componentes reutilizáveis",
    ),
    restrictions=(
        "Não usar eval",
        "Evitar variáveis globais",
        "Evitar callback hell",
        "Não usar bibliotecas sem manutenção",
        "Evitar !important no CSS",
        "Não usar dependências pagas",
    ),
)


def load_catalog(path: str | Path) -> Catalog:
    """
    Load a catalog from a JSON-with-comments file.
    Every key of the file must be a known catalog field holding a list
    (or, for `specific_features`, an object of lists). Missing keys keep the
    default catalog values. Fails fast on unknown or malformed keys.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(f"Catalog file not found at '{cfg_path}'.")

    with cfg_path.open("r", encoding="utf-8") as f:
        try:
            data = commentjson.load(f)
        except commentjson.JSONLibraryException as e:
            raise ValueError(f"Catalog file at '{cfg_path}' is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Catalog file must contain a JSON object")

    known = {f.name for f in fields(Catalog)}
    overrides: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            raise ValueError(f"Unknown catalog key: {key}")
        if key == "specific_features":
            if not isinstance(value, dict) or not all(isinstance(v, list) for v in value.values()):
                raise ValueError("Catalog key 'specific_features' must map system types to lists")
            overrides[key] = {str(k): tuple(str(x) for x in v) for k, v in value.items()}
        else:
            if not isinstance(value, list):
                raise ValueError(f"Catalog key '{key}' must be a list")
            overrides[key] = tuple(str(x) for x in value)

    base = DEFAULT_CATALOG.to_dict()
    base["specific_features"] = dict(DEFAULT_CATALOG.specific_features)
    merged = {k: (tuple(v) if isinstance(v, list) else v) for k, v in base.items()}
    merged.update(overrides)
    logger.info(f"[CATALOG] Loaded {len(overrides)} catalog override(s) from {cfg_path}")
    return Catalog(**merged)


_ACTIVE_CATALOG: Catalog | None = None


def get_catalog() -> Catalog:
    global _ACTIVE_CATALOG

    if _ACTIVE_CATALOG is None:
        _ACTIVE_CATALOG = DEFAULT_CATALOG
        if CATALOG_PATH:
            try:
                _ACTIVE_CATALOG = load_catalog(CATALOG_PATH)
            except (FileNotFoundError, ValueError) as e:
                logger.error(f"[CATALOG] Falling back to the built-in catalog: {e}")
    return _ACTIVE_CATALOG
