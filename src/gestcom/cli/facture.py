"""Sous-commandes CLI pour la gestion des factures."""

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
    lire_date,
    lire_decimal,
    lire_filtres,
    lire_lignes,
)
from gestcom.documents.echeancier import (
    OPTIONS_PREDEFINIES,
    texte_conditions,
    valider_echeancier,
)
from gestcom.documents.erreurs import ErreurValidation
from gestcom.documents.modeles import Facture, InvoiceStatus, ProfilClient
from gestcom.documents.registre import synthese
from gestcom.documents.rendu import formater_montant

logger = logging.getLogger(__name__)

facture_app = typer.Typer(no_args_is_help=True)


def _statut_style(statut: InvoiceStatus) -> str:
    """Retourne le style Rich pour un statut de facture."""
    styles = {
        InvoiceStatus.DRAFT: "dim",
        InvoiceStatus.SENT: "yellow",
        InvoiceStatus.PAID: "green",
        InvoiceStatus.PARTIALLY_PAID: "cyan",
        InvoiceStatus.OVERDUE: "red bold",
        InvoiceStatus.CANCELLED: "strike",
    }
    return styles.get(statut, "")


def _obtenir(numero: str) -> Facture:
    facture = get_registre().obtenir_facture(numero)
    if facture is None:
        console.print(f"[red]Facture {numero} introuvable[/red]")
        raise typer.Exit(1)
    return facture


@facture_app.command(name="creer")
def creer(
    client: str = typer.Option(..., "--client", "-c", prompt="Nom du client"),
    adresse: str = typer.Option("", "--adresse", "-a", help="Adresse du client"),
    designation: Optional[str] = typer.Option(
        None, "--designation", "-d", help="Designation (facture a une ligne)"
    ),
    quantite: str = typer.Option("1", "--quantite", "-q", help="Quantite"),
    prix: Optional[str] = typer.Option(None, "--prix", "-p", help="Prix unitaire HT"),
    tva: str = typer.Option("20", "--tva", "-t", help="Taux de TVA (%)"),
    lignes: Optional[list[str]] = typer.Option(
        None, "--ligne", "-l", help="Ligne 'designation;quantite;prix[;tva]' (repetable)"
    ),
    echeance_jours: int = typer.Option(
        30, "--echeance", "-e", help="Jours avant echeance"
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
    notes: str = typer.Option("", "--notes", "-n", help="Notes additionnelles"),
) -> None:
    """Creer une nouvelle facture (brouillon)."""
    lignes_document = lire_lignes(lignes, designation, quantite, prix, tva)

    registre = get_registre()
    aujourdhui = datetime.date.today()
    numero = registre.prochain_numero_facture(aujourdhui.year)

    facture = Facture(
        numero=numero,
        client=ProfilClient(nom=client, adresse=adresse),
        date_emission=aujourdhui,
        date_echeance=aujourdhui + datetime.timedelta(days=echeance_jours),
        lignes=lignes_document,
        notes=notes,
    )

    try:
        totaux = facture.totaux
        echeances = construire_echeancier(echeancier, tranches, totaux.total_ttc, aujourdhui)
    except ErreurValidation as e:
        console.print(f"[red]Erreur: {e}[/red]")
        raise typer.Exit(1)

    facture = facture.model_copy(
        update={
            "echeances": echeances,
            "conditions_paiement": texte_conditions(echeances),
        }
    )

    console.print(f"\n[bold]Apercu de la facture {numero}[/bold]")
    console.print(f"  Client: {client}")
    afficher_lignes(facture, totaux)
    afficher_totaux(totaux)
    afficher_echeancier(valider_echeancier(totaux.total_ttc, echeances))

    registre.ajouter_facture(facture)
    console.print(f"\n[green]Facture {numero} creee (brouillon)[/green]")


@facture_app.command(name="lister")
def lister(
    statut: Optional[str] = typer.Option(
        None,
        "--statut",
        "-s",
        help="Filtrer par statut (draft, sent, paid, partially_paid, overdue, cancelled)",
    ),
    recherche: Optional[str] = typer.Option(
        None, "--recherche", "-r", help="Numero ou nom du client"
    ),
    du: Optional[str] = typer.Option(None, "--du", help="Emises a partir du (AAAA-MM-JJ)"),
    au: Optional[str] = typer.Option(None, "--au", help="Emises jusqu'au (AAAA-MM-JJ)"),
    montant_min: Optional[str] = typer.Option(None, "--min", help="Total TTC minimum"),
    montant_max: Optional[str] = typer.Option(None, "--max", help="Total TTC maximum"),
) -> None:
    """Lister les factures avec les totaux factures, payes et dus."""
    registre = get_registre()
    filtres = lire_filtres(recherche, du, au, montant_min, montant_max)

    filtre_statut = None
    if statut:
        try:
            filtre_statut = InvoiceStatus(statut.lower())
        except ValueError:
            console.print(f"[red]Statut invalide: {statut}[/red]")
            console.print(f"Statuts valides: {', '.join(s.value for s in InvoiceStatus)}")
            raise typer.Exit(1)

    try:
        factures = registre.lister_factures(statut=filtre_statut, **filtres)
    except ErreurValidation as e:
        console.print(f"[red]Erreur: {e}[/red]")
        raise typer.Exit(1)

    if not factures:
        console.print("[yellow]Aucune facture trouvee.[/yellow]")
        return

    tableau = Table(title="Factures", show_header=True)
    tableau.add_column("Numero", style="cyan")
    tableau.add_column("Client")
    tableau.add_column("Date")
    tableau.add_column("Echeance")
    tableau.add_column("Total TTC", justify="right")
    tableau.add_column("Reste du", justify="right")
    tableau.add_column("Statut")

    valides: list[Facture] = []
    for f in factures:
        style = _statut_style(f.statut)
        try:
            total_ttc = formater_montant(f.totaux.total_ttc)
            reste = formater_montant(f.solde_restant)
            valides.append(f)
        except ErreurValidation as e:
            logger.warning("Facture %s invalide: %s", f.numero, e)
            total_ttc = reste = "[red]invalide[/red]"
        tableau.add_row(
            f.numero,
            f.client.nom,
            str(f.date_emission),
            str(f.date_echeance),
            total_ttc,
            reste,
            f"[{style}]{f.statut.value.upper()}[/{style}]",
        )

    console.print(tableau)

    resume = synthese(valides)
    console.print(
        f"{resume.nombre} facture(s) - Total TTC: {formater_montant(resume.total_ttc)}, "
        f"paye: {formater_montant(resume.total_paye)}, "
        f"du: {formater_montant(resume.total_du)}"
    )
    if len(valides) < len(factures):
        console.print(
            f"[yellow]{len(factures) - len(valides)} facture(s) invalide(s) "
            "exclue(s) des totaux[/yellow]"
        )


@facture_app.command(name="voir")
def voir(
    numero: str = typer.Argument(help="Numero de la facture"),
) -> None:
    """Afficher les details d'une facture."""
    facture = _obtenir(numero)

    console.print(f"\n[bold]Facture {facture.numero}[/bold]")
    console.print(f"  Client: {facture.client.nom}")
    if facture.client.adresse:
        console.print(f"  Adresse: {facture.client.adresse}")
    console.print(f"  Date: {facture.date_emission}")
    console.print(f"  Echeance: {facture.date_echeance}")
    style = _statut_style(facture.statut)
    console.print(f"  Statut: [{style}]{facture.statut.value.upper()}[/{style}]")
    if facture.devis_origine:
        console.print(f"  Devis d'origine: {facture.devis_origine}")

    try:
        totaux = facture.totaux
        solde = facture.solde_restant
    except ErreurValidation as e:
        console.print(f"[red]Facture invalide: {e}[/red]")
        raise typer.Exit(1)

    afficher_lignes(facture, totaux)
    afficher_totaux(totaux)
    if facture.montant_paye:
        console.print(f"  Deja regle: {formater_montant(facture.montant_paye)}")
        if solde < 0:
            console.print(f"  [yellow]Trop-percu: {formater_montant(-solde)}[/yellow]")
        else:
            console.print(f"  [bold]Reste a payer: {formater_montant(solde)}[/bold]")

    afficher_echeancier(valider_echeancier(totaux.total_ttc, facture.echeances))

    if facture.notes:
        console.print(f"\n  Notes: {facture.notes}")


@facture_app.command(name="envoyer")
def envoyer(
    numero: str = typer.Argument(help="Numero de la facture"),
) -> None:
    """Marquer une facture comme envoyee."""
    _obtenir(numero)
    get_registre().mettre_a_jour_statut_facture(numero, InvoiceStatus.SENT)
    console.print(f"[green]Facture {numero} marquee comme ENVOYEE[/green]")


@facture_app.command(name="payer")
def payer(
    numero: str = typer.Argument(help="Numero de la facture"),
    montant: Optional[str] = typer.Option(
        None, "--montant", "-m", help="Montant regle (defaut: reste a payer)"
    ),
    date: Optional[str] = typer.Option(
        None, "--date", "-d", help="Date de paiement (AAAA-MM-JJ)"
    ),
) -> None:
    """Enregistrer un reglement (total ou partiel)."""
    facture = _obtenir(numero)
    date_paiement = lire_date(date, "date de paiement") if date else datetime.date.today()

    try:
        valeur = lire_decimal(montant, "montant") if montant else facture.solde_restant
        facture = get_registre().enregistrer_paiement(numero, valeur, date_paiement)
    except ValueError as e:
        console.print(f"[red]Erreur: {e}[/red]")
        raise typer.Exit(1)

    if facture.statut == InvoiceStatus.PAID:
        console.print(f"[green]Facture {numero} marquee comme PAYEE ({date_paiement})[/green]")
        if facture.trop_percu:
            console.print(
                f"[yellow]Trop-percu: {formater_montant(-facture.solde_restant)}[/yellow]"
            )
    else:
        console.print(
            f"[cyan]Paiement partiel enregistre, reste "
            f"{formater_montant(facture.solde_restant)}[/cyan]"
        )


@facture_app.command(name="relances")
def relances() -> None:
    """Afficher les factures en souffrance (echeance depassee, non soldees)."""
    registre = get_registre()
    aujourdhui = datetime.date.today()

    en_retard = registre.factures_en_retard(aujourdhui)

    # Marquer automatiquement les envoyees en retard comme OVERDUE
    for f in en_retard:
        if f.statut == InvoiceStatus.SENT:
            registre.mettre_a_jour_statut_facture(f.numero, InvoiceStatus.OVERDUE)

    if not en_retard:
        console.print("[green]Aucune facture en souffrance.[/green]")
        return

    tableau = Table(title="Factures en souffrance", show_header=True)
    tableau.add_column("Numero", style="cyan")
    tableau.add_column("Client")
    tableau.add_column("Echeance", style="red")
    tableau.add_column("Jours de retard", justify="right", style="red bold")
    tableau.add_column("Reste du", justify="right")

    for f in en_retard:
        try:
            reste = formater_montant(f.solde_restant)
        except ErreurValidation:
            reste = "[red]invalide[/red]"
        tableau.add_row(
            f.numero,
            f.client.nom,
            str(f.date_echeance),
            str((aujourdhui - f.date_echeance).days),
            reste,
        )

    console.print(tableau)


@facture_app.command(name="pdf")
def pdf(
    numero: str = typer.Argument(help="Numero de la facture"),
) -> None:
    """Generer le PDF d'une facture."""
    from gestcom.cli.app import charger_config_cli, get_data_dir
    from gestcom.documents.rendu import generer_pdf

    facture = _obtenir(numero)
    config = charger_config_cli()

    chemin = generer_pdf(
        facture, config.organisation, config.theme, get_data_dir() / "pdf"
    )
    console.print(f"[green]PDF genere: {chemin}[/green]")
