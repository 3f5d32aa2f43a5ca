"""Application CLI principale GestCom."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

import gestcom
from gestcom.config import charger_config, repertoire_donnees
from gestcom.documents.modeles import ConfigGestcom

app = typer.Typer(
    name="gestcom",
    help="GestCom - Factures et devis pour organisme de formation",
    no_args_is_help=True,
)

console = Console()

# Options globales stockees via le callback
_data_dir: Path = repertoire_donnees()


def get_data_dir() -> Path:
    """Retourne le repertoire de donnees (registre, config, PDF)."""
    return _data_dir


def charger_config_cli() -> ConfigGestcom:
    """Charge config.yaml et previent l'utilisateur si un defaut a ete cree."""
    chemin = get_data_dir() / "config.yaml"
    config, cree = charger_config(chemin)
    if cree:
        console.print(
            f"[yellow]Fichier de configuration cree: {chemin}[/yellow]\n"
            "[yellow]Veuillez remplir les informations de l'organisme.[/yellow]"
        )
    return config


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"GestCom version {gestcom.__version__}")
        raise typer.Exit()


@app.callback()
def main(
    data: Optional[str] = typer.Option(
        None,
        "--data",
        "-D",
        help="Repertoire de donnees (defaut: $GESTCOM_DATA_DIR ou ./donnees)",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", help="Afficher les journaux detailles"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Afficher la version de GestCom",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """GestCom - Gestion commerciale: factures, devis, echeanciers."""
    global _data_dir
    _data_dir = repertoire_donnees(data)
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# Import et enregistrement des sous-commandes
from gestcom.cli.devis import devis_app  # noqa: E402
from gestcom.cli.facture import facture_app  # noqa: E402

app.add_typer(facture_app, name="facture", help="Gestion des factures")
app.add_typer(devis_app, name="devis", help="Gestion des devis")
