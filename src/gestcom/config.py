"""Configuration GestCom: repertoire de donnees et profil de l'organisation.

Le repertoire de donnees vient de l'option CLI --data, sinon de la variable
GESTCOM_DATA_DIR (fichier .env accepte), sinon ./donnees.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from gestcom.documents.modeles import ConfigGestcom

logger = logging.getLogger(__name__)

load_dotenv()

REPERTOIRE_DEFAUT = Path("donnees")


def repertoire_donnees(option: str | None = None) -> Path:
    """Resout le repertoire de donnees (option > environnement > defaut)."""
    if option:
        return Path(option)
    env = os.environ.get("GESTCOM_DATA_DIR")
    if env:
        return Path(env)
    return REPERTOIRE_DEFAUT


def charger_config(chemin: Path) -> tuple[ConfigGestcom, bool]:
    """Charge config.yaml; ecrit une configuration par defaut s'il n'existe pas.

    Returns:
        (config, cree) ou `cree` indique qu'un fichier par defaut a ete ecrit.
    """
    if not chemin.exists():
        chemin.parent.mkdir(parents=True, exist_ok=True)
        defaut = ConfigGestcom()
        with open(chemin, "w", encoding="utf-8") as f:
            yaml.dump(
                defaut.model_dump(mode="json"),
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )
        logger.info("Configuration par defaut ecrite: %s", chemin)
        return defaut, True

    with open(chemin, encoding="utf-8") as f:
        donnees = yaml.safe_load(f)
    return ConfigGestcom.model_validate(donnees or {}), False
