# prompt_wizard/steps.py
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from prompt_wizard.answers import snapshot
from prompt_wizard.catalog import Catalog, get_catalog
from prompt_wizard.composer import (
    CODE_STRUCTURE,
    DESIGN,
    FUNCTIONALITIES,
    LANDING_PAGE,
    OBJECTIVE,
    RESTRICTIONS,
    SECURITY,
    TECH_STACK,
    TITLE,
    Gate,
    Section,
    flag,
    render_section,
)


@dataclass(frozen=True)
class Step:
    id: str
    sections: Tuple[Section, ...]
    gate: Optional[Gate] = None


WIZARD_STEPS: Tuple[Step, ...] = (
    Step("systemType", (TITLE,)),
    Step("objective", (OBJECTIVE,)),
    Step("features", (FUNCTIONALITIES,)),
    Step("design", (DESIGN,)),
    Step("landingPage", (LANDING_PAGE,), gate=flag("hasLandingPage")),
    Step("stack", (TECH_STACK,)),
    Step("security", (SECURITY,)),
    Step("codeStructure", (CODE_STRUCTURE,)),
    Step("restrictions", (RESTRICTIONS,)),
)


def completed_steps(answers: Any, catalog: Optional[Catalog] = None) -> Dict[str, bool]:
    """
    Step id -> completed, in wizard order.

    A step is complete when any of its sections would be emitted by the
    composer. A step whose gate toggle is off is complete.
    """
    snap = snapshot(answers)
    catalog = catalog or get_catalog()

    record: Dict[str, bool] = {}
    for step in WIZARD_STEPS:
        if step.gate is not None and not step.gate(snap):
            record[step.id] = True
            continue
        record[step.id] = any(render_section(s, snap, catalog) for s in step.sections)
    return record


def progress(record: Dict[str, bool]) -> float:
    if not record:
        return 0.0
    return sum(1 for done in record.values() if done) / len(record)


class StepTracker:
    """
    Keeps the last Step Completion Record and reports whether a new Answer
    Set changed it, so callers only push progress updates on change.
    """

    def __init__(self, catalog: Optional[Catalog] = None):
        self._catalog = catalog
        self._lock = threading.Lock()
        self._last: Optional[Dict[str, bool]] = None

    @property
    def last(self) -> Optional[Dict[str, bool]]:
        with self._lock:
            return dict(self._last) if self._last is not None else None

    def update(self, answers: Any) -> Tuple[Dict[str, bool], bool]:
        record = completed_steps(answers, self._catalog)
        with self._lock:
            changed = record != self._last
            if changed:
                self._last = record
            return dict(record), changed
