"""Calcul des totaux HT/TVA/TTC d'un document commercial.

Toute l'arithmetique utilise Decimal avec ROUND_HALF_UP. Chaque ligne est
arrondie au centime avant la sommation; les totaux sont la somme exacte des
lignes arrondies, sans nouvel arrondi global.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal, ROUND_HALF_UP

from gestcom.documents.erreurs import ErreurValidation
from gestcom.documents.modeles import LigneDocument, Totaux, TotauxLigne

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
CENT = Decimal("100")


def arrondir(montant: Decimal) -> Decimal:
    """Arrondit au centime (ROUND_HALF_UP)."""
    return montant.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _verifier_ligne(ligne: LigneDocument, position: int) -> None:
    if ligne.quantite <= 0:
        raise ErreurValidation(
            f"Ligne {position} ({ligne.designation}): quantite {ligne.quantite} "
            "doit etre strictement positive"
        )
    if ligne.prix_unitaire_ht < 0:
        raise ErreurValidation(
            f"Ligne {position} ({ligne.designation}): prix unitaire HT "
            f"{ligne.prix_unitaire_ht} negatif"
        )
    if ligne.taux_tva < 0 or ligne.taux_tva > CENT:
        raise ErreurValidation(
            f"Ligne {position} ({ligne.designation}): taux de TVA {ligne.taux_tva} "
            "hors de l'intervalle 0-100"
        )


def calculer_ligne(ligne: LigneDocument, position: int = 1) -> TotauxLigne:
    """Calcule HT, TVA et TTC d'une ligne apres validation.

    Args:
        ligne: Ligne a calculer.
        position: Rang de la ligne (1-based), utilise dans le message d'erreur.

    Raises:
        ErreurValidation: quantite <= 0, prix negatif ou taux hors 0-100.
    """
    _verifier_ligne(ligne, position)
    total_ht = arrondir(ligne.quantite * ligne.prix_unitaire_ht)
    tva = arrondir(total_ht * ligne.taux_tva / CENT)
    return TotauxLigne(total_ht=total_ht, tva=tva, total_ttc=total_ht + tva)


def calculer_totaux(lignes: Sequence[LigneDocument]) -> Totaux:
    """Calcule les totaux d'un document a partir de ses lignes.

    Une sequence vide donne des totaux nuls. Toutes les lignes sont validees
    avant qu'un total soit produit: aucun total partiel n'est retourne.

    Args:
        lignes: Lignes du document, dans l'ordre d'affichage.

    Returns:
        Totaux avec le detail par ligne dans le meme ordre.

    Raises:
        ErreurValidation: si une ligne est malformee.
    """
    detail = [calculer_ligne(ligne, i) for i, ligne in enumerate(lignes, start=1)]

    total_ht = sum((d.total_ht for d in detail), ZERO)
    total_tva = sum((d.tva for d in detail), ZERO)

    return Totaux(
        total_ht=total_ht,
        total_tva=total_tva,
        total_ttc=total_ht + total_tva,
        lignes=detail,
    )


def calculer_solde(total_ttc: Decimal, montant_paye: Decimal) -> Decimal:
    """Retourne le reste a payer d'une facture.

    Un trop-percu est accepte et donne un solde negatif.

    Raises:
        ErreurValidation: si le montant paye est negatif.
    """
    if montant_paye < 0:
        raise ErreurValidation(f"Montant paye negatif: {montant_paye}")
    solde = total_ttc - montant_paye
    if solde < 0:
        logger.warning(
            "Trop-percu de %s sur un total TTC de %s", -solde, total_ttc
        )
    return solde


def ventiler_tva(lignes: Sequence[LigneDocument]) -> dict[Decimal, tuple[Decimal, Decimal]]:
    """Ventile la base HT et la TVA par taux, pour le pied de document.

    Construit a partir des lignes arrondies: la somme des bases egale
    total_ht et la somme des TVA egale total_tva.

    Returns:
        {taux: (base_ht, tva)}, trie par taux croissant.
    """
    ventilation: dict[Decimal, tuple[Decimal, Decimal]] = {}
    for i, ligne in enumerate(lignes, start=1):
        detail = calculer_ligne(ligne, i)
        taux = ligne.taux_tva
        base, tva = ventilation.get(taux, (ZERO, ZERO))
        ventilation[taux] = (base + detail.total_ht, tva + detail.tva)
    return dict(sorted(ventilation.items()))


def taux_depuis_montant(tva: Decimal, prix_ht: Decimal) -> Decimal:
    """Retrouve le taux de TVA (en %) d'un article a partir de son montant de TVA.

    Raises:
        ErreurValidation: si le prix HT est nul.
    """
    if prix_ht == 0:
        raise ErreurValidation("Prix HT nul: impossible de deduire le taux de TVA")
    return arrondir(tva / prix_ht * CENT)
