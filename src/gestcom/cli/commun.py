"""Utilitaires partages par les sous-commandes facture et devis."""

from __future__ import annotations

import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from gestcom.documents.echeancier import (
    RapportEcheancier,
    completer_reste,
    echeancier_predefini,
    montant_depuis_pourcentage,
    pourcentage_depuis_montant,
)
from gestcom.documents.erreurs import ErreurValidation
from gestcom.documents.modeles import (
    DocumentCommercial,
    EcheancePaiement,
    LigneDocument,
    Totaux,
)
from gestcom.documents.registre import RegistreDocuments
from gestcom.documents.rendu import formater_montant

console = Console()

MESSAGES_AVERTISSEMENT = {
    "percentage_mismatch": "les pourcentages de l'echeancier ne totalisent pas 100%",
    "amount_mismatch": "les montants de l'echeancier ne correspondent pas au total TTC",
}


def get_registre() -> RegistreDocuments:
    """Retourne le registre du repertoire de donnees courant."""
    from gestcom.cli.app import get_data_dir

    return RegistreDocuments(chemin=get_data_dir() / "registre.yaml")


def lire_decimal(valeur: str, nom: str) -> Decimal:
    """Convertit une saisie en Decimal fini (virgule decimale acceptee) ou quitte."""
    try:
        nombre = Decimal(valeur.strip().replace(",", "."))
    except InvalidOperation:
        nombre = None
    if nombre is None or not nombre.is_finite():
        console.print(f"[red]Erreur: {nom} invalide: {valeur}[/red]")
        raise typer.Exit(1)
    return nombre


def lire_date(valeur: str, nom: str) -> datetime.date:
    """Convertit une date AAAA-MM-JJ ou quitte."""
    try:
        return datetime.date.fromisoformat(valeur.strip())
    except ValueError:
        console.print(f"[red]Erreur: {nom} invalide: {valeur} (format AAAA-MM-JJ)[/red]")
        raise typer.Exit(1)


def lire_filtres(
    recherche: Optional[str],
    du: Optional[str],
    au: Optional[str],
    montant_min: Optional[str],
    montant_max: Optional[str],
) -> dict[str, object]:
    """Convertit les options de filtrage de `lister` en arguments du registre."""
    return {
        "recherche": recherche,
        "date_debut": lire_date(du, "date de debut") if du else None,
        "date_fin": lire_date(au, "date de fin") if au else None,
        "montant_min": lire_decimal(montant_min, "montant minimum") if montant_min else None,
        "montant_max": lire_decimal(montant_max, "montant maximum") if montant_max else None,
    }


def lire_lignes(
    lignes: Optional[list[str]],
    designation: Optional[str],
    quantite: str,
    prix: Optional[str],
    tva: str,
) -> list[LigneDocument]:
    """Construit les lignes du document.

    Chaque `--ligne` vaut "designation;quantite;prix[;tva]". Sans `--ligne`,
    une seule ligne est construite a partir des options individuelles, avec
    saisie interactive de la designation et du prix s'ils manquent.
    """
    if not lignes:
        if designation is None:
            designation = typer.prompt("Designation de la prestation")
        if prix is None:
            prix = typer.prompt("Prix unitaire HT")
        return [
            LigneDocument(
                designation=designation,
                quantite=lire_decimal(quantite, "quantite"),
                prix_unitaire_ht=lire_decimal(prix, "prix"),
                taux_tva=lire_decimal(tva, "taux de TVA"),
            )
        ]

    resultat: list[LigneDocument] = []
    for saisie in lignes:
        morceaux = [m.strip() for m in saisie.split(";")]
        if len(morceaux) not in (3, 4) or not morceaux[0]:
            console.print(
                f"[red]Erreur: ligne invalide: {saisie} "
                "(attendu: designation;quantite;prix[;tva])[/red]"
            )
            raise typer.Exit(1)
        resultat.append(
            LigneDocument(
                designation=morceaux[0],
                quantite=lire_decimal(morceaux[1], "quantite"),
                prix_unitaire_ht=lire_decimal(morceaux[2], "prix"),
                taux_tva=lire_decimal(morceaux[3] if len(morceaux) == 4 else tva, "taux de TVA"),
            )
        )
    return resultat


def _lire_tranche(
    saisie: str, total_ttc: Decimal, date_base: datetime.date
) -> EcheancePaiement:
    morceaux = [m.strip() for m in saisie.split(";")]
    if len(morceaux) not in (2, 3) or not morceaux[0]:
        raise ErreurValidation(
            f"Tranche invalide: {saisie} (attendu: libelle;valeur;jours)"
        )
    libelle, valeur = morceaux[0], morceaux[1].replace(",", ".")
    try:
        jours = int(morceaux[2]) if len(morceaux) == 3 else 0
        nombre = Decimal(valeur.removesuffix("%").strip())
    except (ValueError, InvalidOperation):
        raise ErreurValidation(f"Tranche invalide: {saisie}") from None
    if not nombre.is_finite() or nombre <= 0:
        raise ErreurValidation(f"Tranche invalide: {saisie} (valeur non positive)")

    if valeur.endswith("%"):
        pourcentage = nombre
        montant = montant_depuis_pourcentage(total_ttc, nombre)
    else:
        montant = nombre
        pourcentage = pourcentage_depuis_montant(total_ttc, nombre)
    return EcheancePaiement(
        libelle=libelle,
        date_echeance=date_base + datetime.timedelta(days=jours),
        pourcentage=pourcentage,
        montant=montant,
    )


def construire_echeancier(
    option: str,
    tranches: Optional[list[str]],
    total_ttc: Decimal,
    date_base: datetime.date,
) -> list[EcheancePaiement]:
    """Echeancier predefini, ou personnalise a partir des `--tranche`.

    Une tranche vaut "libelle;valeur;jours": "30%" est un pourcentage du TTC,
    "120" un montant. Un echeancier partiel est complete par "Reste a payer".

    Raises:
        ErreurValidation: option inconnue ou tranche mal formee.
    """
    if not tranches:
        return echeancier_predefini(option, total_ttc, date_base)
    saisies = [_lire_tranche(t, total_ttc, date_base) for t in tranches]
    return completer_reste(total_ttc, saisies, date_base)


def afficher_lignes(document: DocumentCommercial, totaux: Totaux) -> None:
    tableau = Table(show_header=True, box=None)
    tableau.add_column("Designation")
    tableau.add_column("Qte", justify="right")
    tableau.add_column("PU HT", justify="right")
    tableau.add_column("TVA", justify="right")
    tableau.add_column("Total HT", justify="right")
    for ligne, calcul in zip(document.lignes, totaux.lignes):
        tableau.add_row(
            ligne.designation,
            str(ligne.quantite),
            formater_montant(ligne.prix_unitaire_ht),
            f"{ligne.taux_tva}%",
            formater_montant(calcul.total_ht),
        )
    console.print(tableau)


def afficher_totaux(totaux: Totaux) -> None:
    console.print(f"  Total HT: {formater_montant(totaux.total_ht)}")
    console.print(f"  TVA: {formater_montant(totaux.total_tva)}")
    console.print(f"  [bold]Total TTC: {formater_montant(totaux.total_ttc)}[/bold]")


def afficher_echeancier(rapport: RapportEcheancier) -> None:
    if not rapport.echeances_triees:
        return
    console.print("\n  [bold]Echeancier:[/bold]")
    for e in rapport.echeances_triees:
        console.print(
            f"    {e.date_echeance}  {e.libelle}: {e.pourcentage}% "
            f"soit {formater_montant(e.montant)} ({e.statut.value})"
        )
    for code in sorted(rapport.avertissements):
        console.print(f"  [yellow][!] Attention: {MESSAGES_AVERTISSEMENT[code]}[/yellow]")
