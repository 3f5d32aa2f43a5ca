"""Sous-commandes CLI pour la gestion des devis."""

from __future__ import annotations

import datetime
import logging
from typing import Optional

import typer
from rich.table import Table

from gestcom.cli.commun import (
    afficher_echeancier,
    afficher_lignes,
    afficher_totaux,
    console,
    construire_echeancier,
    get_registre,
    lire_filtres,
    lire_lignes,
)
from gestcom.documents.echeancier import (
    OPTIONS_PREDEFINIES,
    texte_conditions,
    valider_echeancier,
)
from gestcom.documents.erreurs import ErreurValidation
from gestcom.documents.modeles import Devis, ProfilClient, QuoteStatus
from gestcom.documents.rendu import formater_montant
from gestcom.documents.urgence import UrgenceDevis, deriver_urgence_devis

logger = logging.getLogger(__name__)

devis_app = typer.Typer(no_args_is_help=True)

_COULEURS_URGENCE = {
    UrgenceDevis.VALID: "green",
    UrgenceDevis.EXPIRING_SOON: "yellow",
    UrgenceDevis.EXPIRED: "red",
}


def _obtenir(numero: str) -> Devis:
    devis = get_registre().obtenir_devis(numero)
    if devis is None:
        console.print(f"[red]Devis {numero} introuvable[/red]")
        raise typer.Exit(1)
    return devis


@devis_app.command(name="creer")
def creer(
    client: str = typer.Option(..., "--client", "-c", prompt="Nom du client"),
    adresse: str = typer.Option("", "--adresse", "-a", help="Adresse du client"),
    designation: Optional[str] = typer.Option(
        None, "--designation", "-d", help="Designation (devis a une ligne)"
    ),
    quantite: str = typer.Option("1", "--quantite", "-q", help="Quantite"),
    prix: Optional[str] = typer.Option(None, "--prix", "-p", help="Prix unitaire HT"),
    tva: str = typer.Option("20", "--tva", "-t", help="Taux de TVA (%)"),
    lignes: Optional[list[str]] = typer.Option(
        None, "--ligne", "-l", help="Ligne 'designation;quantite;prix[;tva]' (repetable)"
    ),
    validite_jours: int = typer.Option(
        30, "--validite", help="Duree de validite du devis en jours"
    ),
    echeancier: str = typer.Option(
        "reception",
        "--echeancier",
        help=f"Echeancier predefini ({', '.join(OPTIONS_PREDEFINIES)})",
    ),
    tranches: Optional[list[str]] = typer.Option(
        None,
        "--tranche",
        help="Echeance 'libelle;valeur;jours', valeur en % ou en euros (repetable)",
    ),
) -> None:
    """Creer un nouveau devis (brouillon)."""
    lignes_document = lire_lignes(lignes, designation, quantite, prix, tva)

    registre = get_registre()
    aujourdhui = datetime.date.today()
    numero = registre.prochain_numero_devis(aujourdhui.year)

    devis = Devis(
        numero=numero,
        client=ProfilClient(nom=client, adresse=adresse),
        date_emission=aujourdhui,
        valide_jusqu_au=aujourdhui + datetime.timedelta(days=validite_jours),
        lignes=lignes_document,
    )

    try:
        totaux = devis.totaux
        echeances = construire_echeancier(echeancier, tranches, totaux.total_ttc, aujourdhui)
    except ErreurValidation as e:
        console.print(f"[red]Erreur: {e}[/red]")
        raise typer.Exit(1)

    devis = devis.model_copy(
        update={
            "echeances": echeances,
            "conditions_paiement": texte_conditions(echeances),
        }
    )

    afficher_lignes(devis, totaux)
    afficher_totaux(totaux)
    afficher_echeancier(valider_echeancier(totaux.total_ttc, echeances))

    registre.ajouter_devis(devis)
    console.print(f"\n[green]Devis {numero} cree (brouillon)[/green]")


@devis_app.command(name="lister")
def lister(
    statut: Optional[str] = typer.Option(
        None, "--statut", "-s", help="Filtrer par statut"
    ),
    recherche: Optional[str] = typer.Option(
        None, "--recherche", "-r", help="Numero ou nom du client"
    ),
    du: Optional[str] = typer.Option(None, "--du", help="Emis a partir du (AAAA-MM-JJ)"),
    au: Optional[str] = typer.Option(None, "--au", help="Emis jusqu'au (AAAA-MM-JJ)"),
    montant_min: Optional[str] = typer.Option(None, "--min", help="Total TTC minimum"),
    montant_max: Optional[str] = typer.Option(None, "--max", help="Total TTC maximum"),
) -> None:
    """Lister les devis avec leur validite."""
    filtres = lire_filtres(recherche, du, au, montant_min, montant_max)
    filtre_statut = None
    if statut:
        try:
            filtre_statut = QuoteStatus(statut.lower())
        except ValueError:
            console.print(f"[red]Statut invalide: {statut}[/red]")
            console.print(f"Statuts valides: {', '.join(s.value for s in QuoteStatus)}")
            raise typer.Exit(1)

    try:
        tous = get_registre().lister_devis(statut=filtre_statut, **filtres)
    except ErreurValidation as e:
        console.print(f"[red]Erreur: {e}[/red]")
        raise typer.Exit(1)

    if not tous:
        console.print("[yellow]Aucun devis trouve.[/yellow]")
        return

    maintenant = datetime.datetime.now()
    tableau = Table(title="Devis", show_header=True)
    tableau.add_column("Numero", style="cyan")
    tableau.add_column("Client")
    tableau.add_column("Valable jusqu'au")
    tableau.add_column("Total TTC", justify="right")
    tableau.add_column("Statut")
    tableau.add_column("Validite")

    for d in tous:
        etat = deriver_urgence_devis(d.valide_jusqu_au, maintenant)
        couleur = _COULEURS_URGENCE[etat.urgence]
        try:
            total_ttc = formater_montant(d.totaux.total_ttc)
        except ErreurValidation as e:
            logger.warning("Devis %s invalide: %s", d.numero, e)
            total_ttc = "[red]invalide[/red]"
        tableau.add_row(
            d.numero,
            d.client.nom,
            str(d.valide_jusqu_au),
            total_ttc,
            d.statut.value.upper(),
            f"[{couleur}]{etat.message}[/{couleur}]",
        )

    console.print(tableau)


@devis_app.command(name="voir")
def voir(
    numero: str = typer.Argument(help="Numero du devis"),
) -> None:
    """Afficher les details d'un devis."""
    devis = _obtenir(numero)

    console.print(f"\n[bold]Devis {devis.numero}[/bold]")
    console.print(f"  Client: {devis.client.nom}")
    console.print(f"  Date: {devis.date_emission}")
    console.print(f"  Valable jusqu'au: {devis.valide_jusqu_au}")
    console.print(f"  Statut: {devis.statut.value.upper()}")
    if devis.facture_liee:
        console.print(f"  Facture: {devis.facture_liee}")

    etat = deriver_urgence_devis(devis.valide_jusqu_au)
    if etat.urgence != UrgenceDevis.VALID:
        couleur = _COULEURS_URGENCE[etat.urgence]
        console.print(f"  [{couleur}][!] {etat.message}[/{couleur}]")

    try:
        totaux = devis.totaux
    except ErreurValidation as e:
        console.print(f"[red]Devis invalide: {e}[/red]")
        raise typer.Exit(1)

    afficher_lignes(devis, totaux)
    afficher_totaux(totaux)
    afficher_echeancier(valider_echeancier(totaux.total_ttc, devis.echeances))


@devis_app.command(name="statut")
def statut(
    numero: str = typer.Argument(help="Numero du devis"),
    valeur: str = typer.Argument(help="Nouveau statut (sent, accepted, rejected, ...)"),
) -> None:
    """Changer le statut d'un devis."""
    _obtenir(numero)
    try:
        nouveau = QuoteStatus(valeur.lower())
    except ValueError:
        console.print(f"[red]Statut invalide: {valeur}[/red]")
        raise typer.Exit(1)

    get_registre().mettre_a_jour_statut_devis(numero, nouveau)
    console.print(f"[green]Devis {numero}: statut {nouveau.value.upper()}[/green]")


@devis_app.command(name="convertir")
def convertir(
    numero: str = typer.Argument(help="Numero du devis"),
    echeance_jours: int = typer.Option(
        30, "--echeance", "-e", help="Jours avant echeance de la facture"
    ),
) -> None:
    """Convertir un devis envoye ou accepte en facture."""
    _obtenir(numero)
    try:
        facture = get_registre().convertir_devis(
            numero, datetime.date.today(), delai_jours=echeance_jours
        )
    except ValueError as e:
        console.print(f"[red]Erreur: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Devis {numero} converti en facture {facture.numero}[/green]")


@devis_app.command(name="pdf")
def pdf(
    numero: str = typer.Argument(help="Numero du devis"),
) -> None:
    """Generer le PDF d'un devis."""
    from gestcom.cli.app import charger_config_cli, get_data_dir
    from gestcom.documents.rendu import generer_pdf

    devis = _obtenir(numero)
    config = charger_config_cli()

    chemin = generer_pdf(devis, config.organisation, config.theme, get_data_dir() / "pdf")
    console.print(f"[green]PDF genere: {chemin}[/green]")
