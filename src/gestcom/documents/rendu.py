"""Rendu HTML/PDF des factures et devis.

Utilise Jinja2 pour les templates HTML et WeasyPrint pour la conversion en PDF.
Le profil de l'organisation et le theme sont passes en parametres; le rendu
ne modifie jamais le document.
"""

from __future__ import annotations

import datetime
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Union

from jinja2 import Environment, FileSystemLoader

from gestcom.documents.echeancier import valider_echeancier
from gestcom.documents.erreurs import ErreurValidation
from gestcom.documents.modeles import (
    ConfigTheme,
    Devis,
    Facture,
    InvoiceStatus,
    ProfilOrganisation,
)
from gestcom.documents.totaux import arrondir, ventiler_tva
from gestcom.documents.urgence import classer_delai, deriver_urgence_devis, jours_restants

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

STATUTS_SOLDES = (InvoiceStatus.PAID, InvoiceStatus.CANCELLED, InvoiceStatus.DRAFT)

Document = Union[Facture, Devis]


def formater_montant(montant: Decimal) -> str:
    """Formate un montant: separateur de milliers, 2 decimales, symbole en suffixe.

    Exemple: Decimal("1234.5") -> "1 234,50 €".
    """
    texte = f"{arrondir(montant):,.2f}"
    return texte.replace(",", " ").replace(".", ",") + " €"


def formater_taux(taux: Decimal) -> str:
    """Formate un taux de TVA sans zeros superflus: 20 -> '20 %', 5.5 -> '5,5 %'."""
    texte = f"{taux:f}"
    if "." in texte:
        texte = texte.rstrip("0").rstrip(".")
    return texte.replace(".", ",") + " %"


def _environnement() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=True,
    )
    env.filters["montant"] = formater_montant
    env.filters["taux"] = formater_taux
    return env


def construire_contexte(
    document: Document,
    organisation: ProfilOrganisation,
    theme: ConfigTheme,
    maintenant: datetime.datetime | None = None,
) -> dict[str, Any]:
    """Construit le contexte de rendu d'un document.

    Si les lignes sont invalides, le contexte contient `erreur` et aucun
    total: le template d'erreur est alors utilise.
    """
    if maintenant is None:
        maintenant = datetime.datetime.now()

    contexte: dict[str, Any] = {
        "document": document,
        "organisation": organisation,
        "theme": theme,
        "est_facture": isinstance(document, Facture),
        "genere_le": maintenant,
    }

    try:
        totaux = document.totaux
        ventilation = ventiler_tva(document.lignes)
        solde = document.solde_restant if isinstance(document, Facture) else None
    except ErreurValidation as e:
        logger.warning("Document %s non rendu: %s", document.numero, e)
        contexte["erreur"] = str(e)
        return contexte

    contexte.update(
        totaux=totaux,
        lignes=list(zip(document.lignes, totaux.lignes)),
        ventilation_tva=ventilation,
        echeancier=valider_echeancier(totaux.total_ttc, document.echeances),
        solde_restant=solde,
    )
    if isinstance(document, Devis):
        contexte["validite"] = deriver_urgence_devis(document.valide_jusqu_au, maintenant)
    elif solde is not None and solde > 0 and document.statut not in STATUTS_SOLDES:
        jours = jours_restants(document.date_echeance, maintenant)
        contexte["delai_echeance"] = classer_delai(jours)
        contexte["jours_echeance"] = jours
    return contexte


def _css(theme: ConfigTheme) -> str:
    css_path = TEMPLATES_DIR / "css" / "document.css"
    css_content = css_path.read_text(encoding="utf-8") if css_path.exists() else ""
    return (
        css_content.replace("VAR_COULEUR_PRIMAIRE", theme.couleur_primaire)
        .replace("VAR_COULEUR_SECONDAIRE", theme.couleur_secondaire)
    )


def rendre_html(
    document: Document,
    organisation: ProfilOrganisation,
    theme: ConfigTheme,
    maintenant: datetime.datetime | None = None,
) -> str:
    """Rend le document en HTML (template facture, devis ou erreur)."""
    contexte = construire_contexte(document, organisation, theme, maintenant)

    if "erreur" in contexte:
        nom_template = "erreur.html"
    elif contexte["est_facture"]:
        nom_template = "facture.html"
    else:
        nom_template = "devis.html"

    template = _environnement().get_template(nom_template)
    return template.render(css=_css(theme), **contexte)


def generer_pdf(
    document: Document,
    organisation: ProfilOrganisation,
    theme: ConfigTheme,
    output_dir: Path,
    maintenant: datetime.datetime | None = None,
) -> Path:
    """Genere le PDF du document et retourne le chemin du fichier."""
    import weasyprint

    html = rendre_html(document, organisation, theme, maintenant)

    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"{document.numero}.pdf"

    weasyprint.HTML(string=html, base_url=str(TEMPLATES_DIR)).write_pdf(str(output_path))
    logger.info("PDF genere: %s", output_path)
    return output_path
