"""Tests du registre, du rendu et de la CLI des factures et devis."""

from __future__ import annotations

import datetime
from decimal import Decimal
from pathlib import Path

import pytest
from freezegun import freeze_time
from typer.testing import CliRunner

from gestcom.cli.app import app
from gestcom.documents.erreurs import ErreurValidation
from gestcom.documents.modeles import (
    ConfigTheme,
    CoordonneesBancaires,
    Devis,
    EcheancePaiement,
    Facture,
    InvoiceStatus,
    LigneDocument,
    ProfilClient,
    ProfilOrganisation,
    QuoteStatus,
    StatutEcheance,
)
from gestcom.documents.registre import RegistreDocuments, synthese
from gestcom.documents.rendu import (
    construire_contexte,
    formater_montant,
    formater_taux,
    rendre_html,
)
from gestcom.documents.urgence import UrgenceDevis


def _weasyprint_available() -> bool:
    """Verifie si WeasyPrint et ses dependances systeme sont disponibles."""
    try:
        import weasyprint  # noqa: F401
        return True
    except (ImportError, OSError):
        return False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _lignes() -> list[LigneDocument]:
    return [
        LigneDocument(
            designation="Formation Excel avance",
            quantite=Decimal("2"),
            prix_unitaire_ht=Decimal("100.00"),
            taux_tva=Decimal("20"),
        )
    ]


def _echeances(statut: StatutEcheance = StatutEcheance.PENDING) -> list[EcheancePaiement]:
    return [
        EcheancePaiement(
            libelle="Acompte",
            date_echeance=datetime.date(2026, 3, 1),
            pourcentage=Decimal("50"),
            montant=Decimal("120.00"),
            statut=statut,
        ),
        EcheancePaiement(
            libelle="Solde",
            date_echeance=datetime.date(2026, 3, 31),
            pourcentage=Decimal("50"),
            montant=Decimal("120.00"),
            statut=statut,
        ),
    ]


def _facture_exemple(**kwargs) -> Facture:
    """Cree une facture d'exemple (240.00 TTC) avec des valeurs par defaut."""
    defaults = dict(
        numero="FAC-2026-0001",
        client=ProfilClient(nom="Acme Formation", adresse="12 rue des Lilas, Lyon"),
        date_emission=datetime.date(2026, 3, 1),
        date_echeance=datetime.date(2026, 3, 31),
        lignes=_lignes(),
        echeances=_echeances(),
    )
    defaults.update(kwargs)
    return Facture(**defaults)


def _devis_exemple(**kwargs) -> Devis:
    defaults = dict(
        numero="DEV-2026-0001",
        client=ProfilClient(nom="Acme Formation"),
        date_emission=datetime.date(2026, 3, 1),
        valide_jusqu_au=datetime.date(2026, 3, 31),
        lignes=_lignes(),
        echeances=_echeances(),
    )
    defaults.update(kwargs)
    return Devis(**defaults)


ORGANISATION = ProfilOrganisation(
    nom="Formations du Rhone",
    siret="123 456 789 00012",
    numero_declaration_activite="84 69 12345 69",
    banque=CoordonneesBancaires(iban="FR76 3000 6000 0112 3456 7890 189", bic="AGRIFRPP"),
)
THEME = ConfigTheme(couleur_primaire="#0b7285")


# ---------------------------------------------------------------------------
# Tests du registre
# ---------------------------------------------------------------------------


class TestRegistreDocuments:
    """Tests de persistance YAML du registre."""

    def test_ajouter_et_obtenir(self, tmp_path: Path):
        """Round-trip: ajouter puis recharger une facture."""
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        facture = _facture_exemple()
        registre.ajouter_facture(facture)

        registre2 = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        result = registre2.obtenir_facture("FAC-2026-0001")
        assert result is not None
        assert result.client.nom == "Acme Formation"
        assert result.totaux == facture.totaux
        assert result.echeances == facture.echeances

    def test_prochain_numero(self, tmp_path: Path):
        """Numerotation sequentielle par annee, sur 4 chiffres."""
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        assert registre.prochain_numero_facture(2026) == "FAC-2026-0001"
        assert registre.prochain_numero_devis(2026) == "DEV-2026-0001"

        registre.ajouter_facture(_facture_exemple(numero="FAC-2026-0001"))
        registre.ajouter_facture(_facture_exemple(numero="FAC-2026-0002"))
        assert registre.prochain_numero_facture(2026) == "FAC-2026-0003"
        assert registre.prochain_numero_facture(2027) == "FAC-2027-0001"
        # Les devis ont leur propre sequence
        assert registre.prochain_numero_devis(2026) == "DEV-2026-0001"

    def test_pas_de_doublon(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple())
        with pytest.raises(ValueError, match="existe deja"):
            registre.ajouter_facture(_facture_exemple())

    def test_lister_par_statut(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple(numero="FAC-2026-0001"))
        registre.ajouter_facture(
            _facture_exemple(numero="FAC-2026-0002", statut=InvoiceStatus.SENT)
        )

        assert len(registre.lister_factures(statut=InvoiceStatus.DRAFT)) == 1
        assert len(registre.lister_factures(statut=InvoiceStatus.SENT)) == 1
        assert len(registre.lister_factures()) == 2

    def test_statut_introuvable(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        with pytest.raises(ValueError, match="introuvable"):
            registre.mettre_a_jour_statut_facture("FAC-2026-0999", InvoiceStatus.SENT)

    def test_paiements_partiel_puis_total(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple(statut=InvoiceStatus.SENT))

        f = registre.enregistrer_paiement(
            "FAC-2026-0001", Decimal("100.00"), datetime.date(2026, 3, 5)
        )
        assert f.statut == InvoiceStatus.PARTIALLY_PAID
        assert f.solde_restant == Decimal("140.00")

        f = registre.enregistrer_paiement(
            "FAC-2026-0001", Decimal("140.00"), datetime.date(2026, 3, 20)
        )
        assert f.statut == InvoiceStatus.PAID
        assert f.solde_restant == Decimal("0.00")
        assert f.date_paiement == datetime.date(2026, 3, 20)

    def test_trop_percu(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple(statut=InvoiceStatus.SENT))
        f = registre.enregistrer_paiement(
            "FAC-2026-0001", Decimal("250.00"), datetime.date(2026, 3, 5)
        )
        assert f.statut == InvoiceStatus.PAID
        assert f.trop_percu
        assert f.solde_restant == Decimal("-10.00")

    def test_paiement_invalide(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple())
        with pytest.raises(ErreurValidation):
            registre.enregistrer_paiement("FAC-2026-0001", Decimal("0"), datetime.date(2026, 3, 5))

    @pytest.mark.parametrize(
        "statut", [InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED, InvoiceStatus.PAID]
    )
    def test_paiement_refuse_selon_statut(self, tmp_path: Path, statut):
        """Un reglement sur une facture brouillon, annulee ou soldee est refuse."""
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple(statut=statut))

        with pytest.raises(ValueError, match="acceptent un paiement"):
            registre.enregistrer_paiement(
                "FAC-2026-0001", Decimal("120.00"), datetime.date(2026, 3, 5)
            )

        facture = RegistreDocuments(chemin=tmp_path / "registre.yaml").obtenir_facture(
            "FAC-2026-0001"
        )
        assert facture.statut == statut
        assert facture.montant_paye == Decimal("0")

    def test_paiement_sur_facture_en_retard(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple(statut=InvoiceStatus.OVERDUE))
        f = registre.enregistrer_paiement(
            "FAC-2026-0001", Decimal("240.00"), datetime.date(2026, 4, 5)
        )
        assert f.statut == InvoiceStatus.PAID

    def test_factures_en_retard(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(
            _facture_exemple(numero="FAC-2026-0001", statut=InvoiceStatus.SENT)
        )
        registre.ajouter_facture(
            _facture_exemple(numero="FAC-2026-0002", statut=InvoiceStatus.PAID)
        )
        registre.ajouter_facture(_facture_exemple(numero="FAC-2026-0003"))
        registre.ajouter_facture(
            _facture_exemple(
                numero="FAC-2026-0004",
                statut=InvoiceStatus.PARTIALLY_PAID,
                montant_paye=Decimal("100"),
            )
        )

        assert registre.factures_en_retard(datetime.date(2026, 3, 31)) == []
        en_retard = registre.factures_en_retard(datetime.date(2026, 4, 1))
        assert [f.numero for f in en_retard] == ["FAC-2026-0001", "FAC-2026-0004"]

    def test_synthese(self):
        factures = [
            _facture_exemple(montant_paye=Decimal("240.00")),
            _facture_exemple(numero="FAC-2026-0002", montant_paye=Decimal("40.00")),
        ]
        resume = synthese(factures)
        assert resume.nombre == 2
        assert resume.total_ttc == Decimal("480.00")
        assert resume.total_paye == Decimal("280.00")
        assert resume.total_du == Decimal("200.00")


def _ligne_invalide() -> list[LigneDocument]:
    return [
        LigneDocument(
            designation="Ancienne saisie",
            quantite=Decimal("0"),
            prix_unitaire_ht=Decimal("10"),
        )
    ]


class TestFiltresListe:
    """Tests des filtres de lister_factures / lister_devis."""

    @pytest.fixture
    def registre(self, tmp_path: Path) -> RegistreDocuments:
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple(numero="FAC-2026-0001"))
        registre.ajouter_facture(
            _facture_exemple(
                numero="FAC-2026-0002",
                client=ProfilClient(nom="Boulangerie Martin"),
                date_emission=datetime.date(2026, 3, 15),
                lignes=[
                    LigneDocument(
                        designation="Formation HACCP",
                        quantite=Decimal("5"),
                        prix_unitaire_ht=Decimal("100.00"),
                    )
                ],
            )
        )
        registre.ajouter_facture(
            _facture_exemple(
                numero="FAC-2026-0003",
                date_emission=datetime.date(2026, 4, 2),
                lignes=_ligne_invalide(),
            )
        )
        return registre

    def _numeros(self, factures) -> list[str]:
        return [f.numero for f in factures]

    def test_recherche_numero_ou_client(self, registre: RegistreDocuments):
        assert self._numeros(registre.lister_factures(recherche="martin")) == [
            "FAC-2026-0002"
        ]
        assert self._numeros(registre.lister_factures(recherche="2026-0003")) == [
            "FAC-2026-0003"
        ]
        assert self._numeros(registre.lister_factures(recherche="ACME")) == [
            "FAC-2026-0001",
            "FAC-2026-0003",
        ]

    def test_periode_bornes_incluses(self, registre: RegistreDocuments):
        resultat = registre.lister_factures(
            date_debut=datetime.date(2026, 3, 1), date_fin=datetime.date(2026, 3, 15)
        )
        assert self._numeros(resultat) == ["FAC-2026-0001", "FAC-2026-0002"]
        resultat = registre.lister_factures(date_debut=datetime.date(2026, 3, 16))
        assert self._numeros(resultat) == ["FAC-2026-0003"]

    def test_fourchette_de_montant(self, registre: RegistreDocuments):
        # 240.00 et 600.00 TTC; la facture invalide est ecartee
        resultat = registre.lister_factures(montant_min=Decimal("240.00"))
        assert self._numeros(resultat) == ["FAC-2026-0001", "FAC-2026-0002"]
        resultat = registre.lister_factures(
            montant_min=Decimal("241"), montant_max=Decimal("600.00")
        )
        assert self._numeros(resultat) == ["FAC-2026-0002"]

    def test_min_superieur_au_max(self, registre: RegistreDocuments):
        with pytest.raises(ErreurValidation, match="superieur"):
            registre.lister_factures(montant_min=Decimal("500"), montant_max=Decimal("100"))

    def test_filtres_combines_avec_statut(self, registre: RegistreDocuments):
        registre.mettre_a_jour_statut_facture("FAC-2026-0002", InvoiceStatus.SENT)
        assert self._numeros(
            registre.lister_factures(statut=InvoiceStatus.SENT, recherche="martin")
        ) == ["FAC-2026-0002"]
        assert registre.lister_factures(statut=InvoiceStatus.DRAFT, recherche="martin") == []

    def test_filtres_devis(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_devis(_devis_exemple())
        registre.ajouter_devis(
            _devis_exemple(numero="DEV-2026-0002", client=ProfilClient(nom="Mairie de Bron"))
        )
        assert [d.numero for d in registre.lister_devis(recherche="bron")] == [
            "DEV-2026-0002"
        ]
        assert registre.lister_devis(montant_max=Decimal("100")) == []


class TestConversionDevis:
    """Tests de la conversion devis -> facture."""

    def test_convertir_devis_envoye(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_devis(
            _devis_exemple(
                statut=QuoteStatus.SENT,
                echeances=_echeances(StatutEcheance.PAID),
            )
        )

        facture = registre.convertir_devis("DEV-2026-0001", datetime.date(2026, 4, 2))

        assert facture.numero == "FAC-2026-0001"
        assert facture.devis_origine == "DEV-2026-0001"
        assert facture.statut == InvoiceStatus.DRAFT
        assert facture.date_echeance == datetime.date(2026, 5, 2)
        assert facture.totaux.total_ttc == Decimal("240.00")
        assert all(e.statut == StatutEcheance.PENDING for e in facture.echeances)

        devis = registre.obtenir_devis("DEV-2026-0001")
        assert devis.statut == QuoteStatus.ACCEPTED
        assert devis.facture_liee == "FAC-2026-0001"
        assert devis.date_acceptation == datetime.date(2026, 4, 2)

    def test_convertir_une_seule_fois(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_devis(_devis_exemple(statut=QuoteStatus.ACCEPTED))
        registre.convertir_devis("DEV-2026-0001", datetime.date(2026, 4, 2))

        with pytest.raises(ValueError, match="deja converti"):
            registre.convertir_devis("DEV-2026-0001", datetime.date(2026, 4, 3))

    @pytest.mark.parametrize("statut", [QuoteStatus.DRAFT, QuoteStatus.REJECTED])
    def test_statut_non_convertible(self, tmp_path: Path, statut):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_devis(_devis_exemple(statut=statut))
        with pytest.raises(ValueError, match="seuls les devis"):
            registre.convertir_devis("DEV-2026-0001", datetime.date(2026, 4, 2))

    def test_acceptation_datee(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_devis(_devis_exemple(statut=QuoteStatus.SENT))
        devis = registre.mettre_a_jour_statut_devis(
            "DEV-2026-0001", QuoteStatus.ACCEPTED, datetime.date(2026, 3, 15)
        )
        assert devis.date_acceptation == datetime.date(2026, 3, 15)


# ---------------------------------------------------------------------------
# Tests du rendu
# ---------------------------------------------------------------------------


class TestFormatage:
    @pytest.mark.parametrize("montant, attendu", [
        (Decimal("1234.5"), "1 234,50 €"),
        (Decimal("0"), "0,00 €"),
        (Decimal("1234567.891"), "1 234 567,89 €"),
        (Decimal("-10"), "-10,00 €"),
    ])
    def test_formater_montant(self, montant, attendu):
        assert formater_montant(montant) == attendu

    @pytest.mark.parametrize("taux, attendu", [
        (Decimal("20"), "20 %"),
        (Decimal("20.00"), "20 %"),
        (Decimal("5.50"), "5,5 %"),
    ])
    def test_formater_taux(self, taux, attendu):
        assert formater_taux(taux) == attendu


class TestRendu:
    """Tests du contexte et du HTML genere."""

    def test_contexte_facture(self):
        facture = _facture_exemple(montant_paye=Decimal("100"))
        contexte = construire_contexte(facture, ORGANISATION, THEME)

        assert contexte["totaux"].total_ttc == Decimal("240.00")
        assert contexte["solde_restant"] == Decimal("140.00")
        assert contexte["echeancier"].conforme
        assert "erreur" not in contexte

    def test_contexte_devis(self):
        devis = _devis_exemple()
        contexte = construire_contexte(
            devis, ORGANISATION, THEME, datetime.datetime(2026, 3, 29, 9, 0)
        )
        assert contexte["validite"].urgence == UrgenceDevis.EXPIRING_SOON
        assert contexte["validite"].jours_restants == 2
        assert contexte["solde_restant"] is None

    def test_contexte_document_invalide(self):
        facture = _facture_exemple(
            lignes=[
                LigneDocument(
                    designation="Erreur",
                    quantite=Decimal("1"),
                    prix_unitaire_ht=Decimal("10"),
                    taux_tva=Decimal("120"),
                )
            ]
        )
        contexte = construire_contexte(facture, ORGANISATION, THEME)
        assert "taux de TVA" in contexte["erreur"]
        assert "totaux" not in contexte

    def test_contexte_echeance_depassee(self):
        facture = _facture_exemple(statut=InvoiceStatus.SENT)
        contexte = construire_contexte(
            facture, ORGANISATION, THEME, datetime.datetime(2026, 4, 2, 10, 0)
        )
        assert contexte["delai_echeance"] == "expired"
        assert contexte["jours_echeance"] == -2

    def test_html_facture(self):
        facture = _facture_exemple(montant_paye=Decimal("40"))
        html = rendre_html(facture, ORGANISATION, THEME)

        assert "Facture FAC-2026-0001" in html
        assert "240,00 €" in html
        assert "Reste à payer" in html
        assert "200,00 €" in html
        assert "#0b7285" in html
        assert "AGRIFRPP" in html
        assert "Formation Excel avance" in html

    def test_html_echeancier_incoherent(self):
        echeances = _echeances()[:1]
        facture = _facture_exemple(echeances=echeances)
        html = rendre_html(facture, ORGANISATION, THEME)
        assert "au lieu de 100 %" in html

    def test_html_devis_sans_echeancier(self):
        """Pas de bandeau d'avertissement quand aucun echeancier n'est saisi."""
        devis = _devis_exemple(echeances=[])
        contexte = construire_contexte(devis, ORGANISATION, THEME)
        assert contexte["echeancier"].avertissements == {
            "percentage_mismatch",
            "amount_mismatch",
        }

        html = rendre_html(devis, ORGANISATION, THEME, datetime.datetime(2026, 3, 10))
        assert "au lieu de 100" not in html
        assert "Les échéances totalisent" not in html
        assert "240,00 €" in html

    def test_html_devis_expire_bientot(self):
        devis = _devis_exemple()
        html = rendre_html(devis, ORGANISATION, THEME, datetime.datetime(2026, 3, 29))
        assert "Devis DEV-2026-0001" in html
        assert "Expire dans 2 jours" in html

    def test_html_erreur(self):
        facture = _facture_exemple(
            lignes=[
                LigneDocument(
                    designation="Vide",
                    quantite=Decimal("0"),
                    prix_unitaire_ht=Decimal("10"),
                )
            ]
        )
        html = rendre_html(facture, ORGANISATION, THEME)
        assert "non généré" in html
        assert "Total TTC" not in html

    def test_rendu_ne_modifie_pas_le_document(self):
        facture = _facture_exemple()
        avant = facture.model_dump()
        rendre_html(facture, ORGANISATION, THEME)
        assert facture.model_dump() == avant

    @pytest.mark.skipif(
        not _weasyprint_available(),
        reason="WeasyPrint system dependencies (pango/gobject) not available",
    )
    def test_generer_pdf_creates_file(self, tmp_path: Path):
        """Le PDF est cree et commence par %PDF."""
        from gestcom.documents.rendu import generer_pdf

        output = generer_pdf(_facture_exemple(), ORGANISATION, THEME, tmp_path)
        assert output.name == "FAC-2026-0001.pdf"
        assert output.read_bytes()[:5] == b"%PDF-"


# ---------------------------------------------------------------------------
# Tests CLI
# ---------------------------------------------------------------------------


runner = CliRunner()
ENV = {"COLUMNS": "200"}


def _invoke(tmp_path: Path, *args: str):
    return runner.invoke(app, ["--data", str(tmp_path), *args], env=ENV)


@freeze_time("2026-03-10")
class TestCLI:
    """Tests des commandes gestcom facture / devis."""

    def test_facture_creer_et_lister(self, tmp_path: Path):
        result = _invoke(
            tmp_path, "facture", "creer",
            "--client", "Acme Formation",
            "--designation", "Formation Python",
            "--quantite", "2",
            "--prix", "100",
        )
        assert result.exit_code == 0, result.output
        assert "FAC-2026-0001" in result.output
        assert "240,00 €" in result.output

        result = _invoke(tmp_path, "facture", "lister")
        assert result.exit_code == 0
        assert "FAC-2026-0001" in result.output
        assert "Acme Formation" in result.output

        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        facture = registre.obtenir_facture("FAC-2026-0001")
        assert facture.echeances[0].libelle == "À réception"
        assert "100.00%" in facture.conditions_paiement

    def test_facture_creer_quantite_invalide(self, tmp_path: Path):
        result = _invoke(
            tmp_path, "facture", "creer",
            "--client", "Acme",
            "--designation", "Formation",
            "--quantite", "0",
            "--prix", "100",
        )
        assert result.exit_code == 1
        assert "Erreur" in result.output
        assert not (tmp_path / "registre.yaml").exists()

    def test_facture_payer_partiel(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple(statut=InvoiceStatus.SENT))

        result = _invoke(tmp_path, "facture", "payer", "FAC-2026-0001", "--montant", "100")
        assert result.exit_code == 0, result.output
        assert "Paiement partiel" in result.output

        result = _invoke(tmp_path, "facture", "payer", "FAC-2026-0001")
        assert result.exit_code == 0
        assert "PAYEE" in result.output

    def test_facture_relances(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(
            _facture_exemple(
                statut=InvoiceStatus.SENT,
                date_echeance=datetime.date(2026, 3, 1),
            )
        )

        result = _invoke(tmp_path, "facture", "relances")
        assert result.exit_code == 0
        assert "FAC-2026-0001" in result.output

        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        assert registre.obtenir_facture("FAC-2026-0001").statut == InvoiceStatus.OVERDUE

    def test_facture_introuvable(self, tmp_path: Path):
        result = _invoke(tmp_path, "facture", "voir", "FAC-2026-0999")
        assert result.exit_code == 1
        assert "introuvable" in result.output

    def test_devis_cycle_complet(self, tmp_path: Path):
        result = _invoke(
            tmp_path, "devis", "creer",
            "--client", "Acme Formation",
            "--designation", "Audit",
            "--prix", "500",
            "--validite", "2",
        )
        assert result.exit_code == 0, result.output
        assert "DEV-2026-0001" in result.output

        result = _invoke(tmp_path, "devis", "voir", "DEV-2026-0001")
        assert result.exit_code == 0
        assert "Expire dans 2 jours" in result.output

        result = _invoke(tmp_path, "devis", "convertir", "DEV-2026-0001")
        assert result.exit_code == 1
        assert "seuls les devis" in result.output

        result = _invoke(tmp_path, "devis", "statut", "DEV-2026-0001", "sent")
        assert result.exit_code == 0

        result = _invoke(tmp_path, "devis", "convertir", "DEV-2026-0001")
        assert result.exit_code == 0, result.output
        assert "FAC-2026-0001" in result.output

    def test_facture_creer_plusieurs_lignes_et_tranches(self, tmp_path: Path):
        result = _invoke(
            tmp_path, "facture", "creer",
            "--client", "Acme Formation",
            "--ligne", "Audit;1;1000",
            "--ligne", "Support;2;50;10",
            "--tranche", "Acompte;30%;0",
        )
        assert result.exit_code == 0, result.output
        assert "1 310,00 €" in result.output

        facture = RegistreDocuments(chemin=tmp_path / "registre.yaml").obtenir_facture(
            "FAC-2026-0001"
        )
        assert [l.designation for l in facture.lignes] == ["Audit", "Support"]
        assert facture.lignes[1].taux_tva == Decimal("10")
        assert [e.libelle for e in facture.echeances] == ["Acompte", "Reste à payer"]
        assert [e.montant for e in facture.echeances] == [Decimal("393.00"), Decimal("917.00")]
        assert facture.echeances[1].pourcentage == Decimal("70.00")
        assert facture.echeances[1].date_echeance == datetime.date(2026, 4, 9)
        assert "30.00% soit 393.00 €" in facture.conditions_paiement

    def test_facture_tranche_en_montant(self, tmp_path: Path):
        result = _invoke(
            tmp_path, "facture", "creer",
            "--client", "Acme",
            "--designation", "Formation",
            "--quantite", "2",
            "--prix", "100",
            "--tranche", "Acompte;60;0",
        )
        assert result.exit_code == 0, result.output
        facture = RegistreDocuments(chemin=tmp_path / "registre.yaml").obtenir_facture(
            "FAC-2026-0001"
        )
        assert facture.echeances[0].pourcentage == Decimal("25.00")
        assert facture.echeances[1].montant == Decimal("180.00")

    def test_facture_tranche_mal_formee(self, tmp_path: Path):
        result = _invoke(
            tmp_path, "facture", "creer",
            "--client", "Acme",
            "--ligne", "Formation;1;100",
            "--tranche", "Acompte",
        )
        assert result.exit_code == 1
        assert "Tranche invalide" in result.output
        assert not (tmp_path / "registre.yaml").exists()

    @pytest.mark.parametrize("valeur", ["nan", "inf", "Infinity", "abc"])
    def test_facture_creer_quantite_non_finie(self, tmp_path: Path, valeur):
        result = _invoke(
            tmp_path, "facture", "creer",
            "--client", "Acme",
            "--designation", "Formation",
            "--quantite", valeur,
            "--prix", "100",
        )
        assert result.exit_code == 1
        assert "quantite invalide" in result.output
        assert not (tmp_path / "registre.yaml").exists()

    def test_facture_payer_date_invalide(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple(statut=InvoiceStatus.SENT))

        result = _invoke(
            tmp_path, "facture", "payer", "FAC-2026-0001", "--date", "2026-13-45"
        )
        assert result.exit_code == 1
        assert "AAAA-MM-JJ" in result.output
        facture = RegistreDocuments(chemin=tmp_path / "registre.yaml").obtenir_facture(
            "FAC-2026-0001"
        )
        assert facture.montant_paye == Decimal("0")

    def test_facture_payer_brouillon_refuse(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple())

        result = _invoke(tmp_path, "facture", "payer", "FAC-2026-0001", "--montant", "50")
        assert result.exit_code == 1
        assert "statut 'draft'" in result.output

    def test_facture_lister_avec_facture_invalide(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple())
        registre.ajouter_facture(
            _facture_exemple(numero="FAC-2026-0002", lignes=_ligne_invalide())
        )

        result = _invoke(tmp_path, "facture", "lister")
        assert result.exit_code == 0, result.output
        assert "FAC-2026-0002" in result.output
        assert "invalide" in result.output
        assert "1 facture(s) - Total TTC: 240,00 €" in result.output

    def test_devis_lister_avec_devis_invalide(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_devis(_devis_exemple(lignes=_ligne_invalide()))

        result = _invoke(tmp_path, "devis", "lister")
        assert result.exit_code == 0, result.output
        assert "DEV-2026-0001" in result.output
        assert "invalide" in result.output

    def test_facture_lister_filtres(self, tmp_path: Path):
        registre = RegistreDocuments(chemin=tmp_path / "registre.yaml")
        registre.ajouter_facture(_facture_exemple())
        registre.ajouter_facture(
            _facture_exemple(
                numero="FAC-2026-0002",
                client=ProfilClient(nom="Boulangerie Martin"),
                date_emission=datetime.date(2026, 3, 8),
            )
        )

        result = _invoke(tmp_path, "facture", "lister", "--recherche", "martin")
        assert result.exit_code == 0, result.output
        assert "FAC-2026-0002" in result.output
        assert "FAC-2026-0001" not in result.output

        result = _invoke(tmp_path, "facture", "lister", "--du", "2026-03-02", "--max", "240")
        assert result.exit_code == 0, result.output
        assert "FAC-2026-0002" in result.output
        assert "FAC-2026-0001" not in result.output

        result = _invoke(tmp_path, "facture", "lister", "--min", "500", "--max", "100")
        assert result.exit_code == 1
        assert "superieur" in result.output

        result = _invoke(tmp_path, "facture", "lister", "--au", "hier")
        assert result.exit_code == 1
        assert "date de fin invalide" in result.output

    def test_devis_creer_echeancier_sans_avertissement(self, tmp_path: Path):
        result = _invoke(
            tmp_path, "devis", "creer",
            "--client", "Acme Formation",
            "--ligne", "Audit;1;500",
            "--tranche", "Acompte;40%;0",
        )
        assert result.exit_code == 0, result.output
        assert "Attention" not in result.output

        devis = RegistreDocuments(chemin=tmp_path / "registre.yaml").obtenir_devis(
            "DEV-2026-0001"
        )
        assert [e.montant for e in devis.echeances] == [Decimal("240.00"), Decimal("360.00")]
        html = rendre_html(devis, ORGANISATION, THEME)
        assert "au lieu de 100" not in html

        result = _invoke(
            tmp_path, "devis", "lister", "--recherche", "acme", "--min", "600", "--max", "600"
        )
        assert result.exit_code == 0, result.output
        assert "DEV-2026-0001" in result.output

    def test_version(self, tmp_path: Path):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "GestCom version" in result.output


# ---------------------------------------------------------------------------
# Tests de la configuration
# ---------------------------------------------------------------------------


class TestConfig:
    def test_repertoire_option_prioritaire(self, monkeypatch):
        from gestcom.config import repertoire_donnees

        monkeypatch.setenv("GESTCOM_DATA_DIR", "/srv/gestcom")
        assert repertoire_donnees("ici") == Path("ici")
        assert repertoire_donnees() == Path("/srv/gestcom")

        monkeypatch.delenv("GESTCOM_DATA_DIR")
        assert repertoire_donnees() == Path("donnees")

    def test_config_par_defaut_ecrite_puis_relue(self, tmp_path: Path):
        from gestcom.config import charger_config

        chemin = tmp_path / "config.yaml"
        config, cree = charger_config(chemin)
        assert cree
        assert chemin.exists()
        assert config.theme.couleur_primaire == "#1a365d"

        config2, cree2 = charger_config(chemin)
        assert not cree2
        assert config2 == config

    def test_profil_organisation_immuable(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            ORGANISATION.nom = "Autre"
