"""Echeanciers de paiement: validation, ventilation et texte des conditions.

La validation ne leve jamais d'exception: les incoherences (pourcentages
ou montants qui ne bouclent pas avec le total TTC) deviennent des
avertissements affiches en bandeau non bloquant.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel

from gestcom.documents.erreurs import ErreurValidation
from gestcom.documents.modeles import EcheancePaiement
from gestcom.documents.totaux import ZERO, arrondir

logger = logging.getLogger(__name__)

Avertissement = Literal["percentage_mismatch", "amount_mismatch"]

TOLERANCE_POURCENTAGE = Decimal("0.5")
TOLERANCE_MONTANT = Decimal("0.01")
CENT = Decimal("100")

LIBELLE_RESTE = "Reste à payer"
DELAI_RESTE_JOURS = 30

# option -> (condition, delai en jours)
OPTIONS_PREDEFINIES: dict[str, tuple[str, int]] = {
    "comptant": ("Paiement comptant", 0),
    "reception": ("À réception", 0),
    "30jours": ("À 30 jours fin de mois", 30),
    "45jours": ("À 45 jours fin de mois", 45),
}


class RapportEcheancier(BaseModel):
    """Echeances triees pour l'affichage et avertissements eventuels."""

    echeances_triees: list[EcheancePaiement]
    avertissements: frozenset[Avertissement] = frozenset()
    somme_pourcentages: Decimal
    somme_montants: Decimal

    @property
    def conforme(self) -> bool:
        return not self.avertissements


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def valider_echeancier(
    total_ttc: Decimal,
    echeances: Sequence[EcheancePaiement],
) -> RapportEcheancier:
    """Verifie la coherence d'un echeancier avec le total TTC du document.

    Args:
        total_ttc: Total TTC calcule du document.
        echeances: Echeances dans leur ordre de saisie.

    Returns:
        RapportEcheancier. Les echeances sont triees par date croissante;
        a date egale, l'ordre de saisie est conserve.
    """
    somme_pourcentages = sum((e.pourcentage for e in echeances), Decimal("0"))
    somme_montants = sum((e.montant for e in echeances), ZERO)

    avertissements: set[Avertissement] = set()

    if abs(somme_pourcentages - CENT) > TOLERANCE_POURCENTAGE:
        logger.warning(
            "Echeancier: somme des pourcentages %s%% differente de 100%%",
            somme_pourcentages,
        )
        avertissements.add("percentage_mismatch")

    if abs(somme_montants - total_ttc) > TOLERANCE_MONTANT:
        logger.warning(
            "Echeancier: somme des montants %s differente du total TTC %s",
            somme_montants,
            total_ttc,
        )
        avertissements.add("amount_mismatch")

    return RapportEcheancier(
        echeances_triees=sorted(echeances, key=lambda e: e.date_echeance),
        avertissements=frozenset(avertissements),
        somme_pourcentages=somme_pourcentages,
        somme_montants=somme_montants,
    )


# ---------------------------------------------------------------------------
# Ventilation montant <-> pourcentage
# ---------------------------------------------------------------------------


def montant_depuis_pourcentage(total_ttc: Decimal, pourcentage: Decimal) -> Decimal:
    """Montant d'une echeance representant `pourcentage` % du total."""
    return arrondir(pourcentage / CENT * total_ttc)


def pourcentage_depuis_montant(total_ttc: Decimal, montant: Decimal) -> Decimal:
    """Pourcentage du total represente par `montant` (0 si le total est nul)."""
    if total_ttc == 0:
        return Decimal("0.00")
    return arrondir(montant / total_ttc * CENT)


def echeancier_predefini(
    option: str,
    total_ttc: Decimal,
    date_base: datetime.date,
) -> list[EcheancePaiement]:
    """Construit un echeancier a une seule echeance couvrant 100% du total.

    Args:
        option: 'comptant', 'reception', '30jours' ou '45jours'.
        total_ttc: Total TTC du document.
        date_base: Date de depart (typiquement la date d'emission).

    Raises:
        ErreurValidation: option inconnue.
    """
    try:
        condition, jours = OPTIONS_PREDEFINIES[option]
    except KeyError:
        raise ErreurValidation(
            f"Option d'echeancier inconnue: {option} "
            f"(valides: {', '.join(OPTIONS_PREDEFINIES)})"
        ) from None

    return [
        EcheancePaiement(
            libelle=condition,
            date_echeance=date_base + datetime.timedelta(days=jours),
            pourcentage=Decimal("100"),
            montant=total_ttc,
        )
    ]


def _est_reste(echeance: EcheancePaiement) -> bool:
    return "reste" in echeance.libelle.lower()


def completer_reste(
    total_ttc: Decimal,
    echeances: Sequence[EcheancePaiement],
    date_base: datetime.date,
) -> list[EcheancePaiement]:
    """Ajoute une echeance "Reste a payer" couvrant la part non ventilee.

    Toute echeance "reste" existante est d'abord retiree. Aucune ligne n'est
    ajoutee si les echeances couvrent deja 100% (ou plus), ou s'il n'y a
    aucune autre echeance.
    """
    saisies = [e for e in echeances if not _est_reste(e)]
    pourcentage_restant = CENT - sum((e.pourcentage for e in saisies), Decimal("0"))

    if not saisies or not (0 < pourcentage_restant < CENT):
        return saisies

    montant_restant = total_ttc - sum((e.montant for e in saisies), ZERO)
    return saisies + [
        EcheancePaiement(
            libelle=LIBELLE_RESTE,
            date_echeance=date_base + datetime.timedelta(days=DELAI_RESTE_JOURS),
            pourcentage=arrondir(pourcentage_restant),
            montant=arrondir(montant_restant),
        )
    ]


# ---------------------------------------------------------------------------
# Texte des conditions de paiement
# ---------------------------------------------------------------------------


def texte_conditions(
    echeances: Sequence[EcheancePaiement],
    *,
    inclure_pourcentages: bool = True,
    inclure_montants: bool = True,
    inclure_conditions: bool = True,
    inclure_dates: bool = True,
) -> str:
    """Genere le texte des conditions de paiement imprime sur le document.

    Une puce par echeance, par exemple:
    "• 50.00% soit 120.00 € à payer à réception le : 01/03/2026."
    Les pourcentages et montants nuls sont omis.
    """
    puces: list[str] = []
    for echeance in echeances:
        morceaux: list[str] = []
        if inclure_pourcentages and echeance.pourcentage:
            morceaux.append(f"{arrondir(echeance.pourcentage)}%")
        if inclure_montants and echeance.montant:
            morceaux.append(f"soit {arrondir(echeance.montant)} €")
        if inclure_conditions and echeance.libelle:
            morceaux.append(f"à payer {echeance.libelle.lower()}")
        if inclure_dates:
            morceaux.append(f"le : {echeance.date_echeance:%d/%m/%Y}")
        if morceaux:
            puces.append(f"• {' '.join(morceaux)}.")
    return "\n".join(puces)
