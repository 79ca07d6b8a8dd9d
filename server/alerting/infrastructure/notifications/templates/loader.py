# server/alerting/infrastructure/notifications/templates/loader.py
from __future__ import annotations
"""
Chargement des templates (email HTML / texte) depuis le paquet.
"""
from functools import lru_cache
from importlib.resources import files
from string import Template


@lru_cache(maxsize=None)
def load_template(name: str) -> str:
    """
    Lit un fichier template situé dans le même package.
    Ex: load_template("email_alert.html")
    """
    return files(__package__).joinpath(name).read_text(encoding="utf-8")


def render_template(name: str, **values: object) -> str:
    """Substitution `$var` ; une clé absente reste telle quelle (safe_substitute)."""
    return Template(load_template(name)).safe_substitute(**{k: "" if v is None else v for k, v in values.items()})
