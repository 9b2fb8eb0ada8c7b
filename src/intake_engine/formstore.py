"""FormStore — loads intake form configurations from ``forms/`` into typed models.

Each ``*.yaml``, ``*.yml`` or ``*.json`` file in the forms directory is one
form.  Its slug is the file stem with underscores turned into dashes, so
``forms/weight_loss.yaml`` is served as ``weight-loss``.

Usage::

    store = FormStore()             # defaults to forms/ relative to repo root
    store.load()

    form = store.get("weight-loss")
    problems = store.lint(form)

Loading is lenient: conditions are not rejected at load time, matching the
runtime rule that a malformed condition simply evaluates to false.  Problems
found by :meth:`FormStore.lint` are logged as warnings, or raised as
``ValueError`` when the store is strict.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from intake_engine.constants import STRICT_FORMS
from intake_engine.evaluator import ConditionEvaluator
from intake_engine.models.form import FormConfig
from intake_engine.models.screen import CompositeScreen

logger = logging.getLogger(__name__)

FORM_SUFFIXES = (".yaml", ".yml", ".json")

_CALC_REF = re.compile(r"calc\.([\w.]+)")


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_document(path: Path | str) -> Any:
    """Load a single YAML or JSON file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing form file: {path}")
    with path.open("r", encoding="utf-8") as f:
        if path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f)


def slug_for(path: Path) -> str:
    return path.stem.replace("_", "-")


# ---------------------------------------------------------------------------
# FormStore
# ---------------------------------------------------------------------------

class FormStore:
    """Loads every form under a directory and provides lookup by slug.

    Args:
        forms_dir: directory holding the form files; defaults to ``forms/``
            under the repository root.
        strict: raise on lint problems instead of logging them.  Defaults
            to the ``INTAKE_STRICT_FORMS`` setting.
    """

    def __init__(self, forms_dir: str | Path | None = None, strict: bool | None = None) -> None:
        if forms_dir is None:
            forms_dir = find_repo_root() / "forms"
        self._base = Path(forms_dir)
        self._strict = STRICT_FORMS if strict is None else strict
        self._evaluator = ConditionEvaluator()

        # Populated by load()
        self.forms: dict[str, FormConfig] = {}

    @property
    def forms_dir(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Parse every form file in the forms directory.

        Raises ``FileNotFoundError`` if the directory does not exist, and
        ``pydantic.ValidationError`` for a structurally invalid form.
        """
        if not self._base.is_dir():
            raise FileNotFoundError(f"Missing forms directory: {self._base}")

        forms: dict[str, FormConfig] = {}
        for path in sorted(self._base.iterdir()):
            if path.suffix not in FORM_SUFFIXES:
                continue
            slug = slug_for(path)
            if slug in forms:
                raise ValueError(f"duplicate form slug {slug!r} ({path.name})")
            forms[slug] = self.load_file(path)

        self.forms = forms
        logger.info("FormStore loaded %d forms from %s: %s", len(forms), self._base, ", ".join(forms))

    def load_file(self, path: str | Path) -> FormConfig:
        """Parse and lint a single form file."""
        path = Path(path)
        if path.suffix not in FORM_SUFFIXES:
            raise ValueError(f"unsupported form file type: {path.name}")

        form = FormConfig.model_validate(load_document(path))
        problems = self.lint(form)
        for problem in problems:
            logger.warning("%s: %s", path.name, problem)
        if problems and self._strict:
            raise ValueError(f"{path.name}: {len(problems)} configuration problem(s): {problems[0]}")
        return form

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, slug: str) -> FormConfig:
        """Return the form registered under *slug*.

        Raises:
            KeyError: if no form has that slug.
        """
        try:
            return self.forms[slug]
        except KeyError:
            raise KeyError(f"Unknown form: {slug}") from None

    def slugs(self) -> list[str]:
        return list(self.forms)

    # ------------------------------------------------------------------
    # Linting
    # ------------------------------------------------------------------

    def lint(self, form: FormConfig) -> list[str]:
        """Return human-readable configuration problems (empty when clean)."""
        problems: list[str] = []

        calc_ids: set[str] = set()
        for screen in form.screens:
            for calc in screen.calculations or []:
                if calc.id in calc_ids:
                    problems.append(f"screen {screen.id}: duplicate calculation id {calc.id!r}")
                calc_ids.add(calc.id)

        def _check(where: str, condition: str) -> None:
            if not self._evaluator.is_well_formed(condition):
                problems.append(f"{where}: unparseable condition {condition!r}")
            for ref in _CALC_REF.findall(condition):
                if ref not in calc_ids:
                    problems.append(f"{where}: unknown calculation {ref!r}")

        for screen in form.screens:
            for target in screen.targets():
                if not form.has_screen(target):
                    problems.append(f"screen {screen.id}: unknown target {target!r}")
            for rule in screen.next_logic or []:
                if not rule.is_else:
                    _check(f"screen {screen.id}", rule.if_)
            if isinstance(screen, CompositeScreen):
                for field in screen.flat_fields():
                    if field.show_if:
                        _check(f"field {screen.id}/{field.id}", field.show_if)

        for rule in form.eligibility_rules:
            _check(f"rule {rule.rule}", rule.if_)

        return problems
