"""Modeles de donnees des documents commerciaux.

Facture, Devis, LigneDocument, EcheancePaiement, et les profils
(organisation, client, theme) passes explicitement au rendu.
Les totaux ne sont jamais stockes: ils sont recalcules depuis les lignes.
"""

from __future__ import annotations

import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


TAUX_TVA_DEFAUT = Decimal("20")
MODE_PAIEMENT_DEFAUT = "Virement bancaire"


def _en_decimal(v: object) -> Decimal:
    if isinstance(v, Decimal):
        return v
    if isinstance(v, float):
        return Decimal(str(v))
    return Decimal(v)


class InvoiceStatus(str, Enum):
    """Statut d'une facture."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class QuoteStatus(str, Enum):
    """Statut d'un devis."""

    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class StatutEcheance(str, Enum):
    """Statut d'une echeance de paiement."""

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class LigneDocument(BaseModel):
    """Ligne d'article d'une facture ou d'un devis.

    Les bornes (quantite > 0, prix >= 0, taux entre 0 et 100) sont
    verifiees par calculer_totaux, pas a la construction: un document
    herite peut etre charge puis signale au rendu.
    """

    designation: str
    description: str = ""
    quantite: Decimal
    prix_unitaire_ht: Decimal
    taux_tva: Decimal = TAUX_TVA_DEFAUT

    @field_validator("quantite", "prix_unitaire_ht", "taux_tva", mode="before")
    @classmethod
    def _coerce_decimal(cls, v: object) -> Decimal:
        return _en_decimal(v)


class TotauxLigne(BaseModel):
    """Montants arrondis d'une ligne."""

    total_ht: Decimal
    tva: Decimal
    total_ttc: Decimal


class Totaux(BaseModel):
    """Totaux HT/TVA/TTC d'un document, avec le detail par ligne."""

    total_ht: Decimal
    total_tva: Decimal
    total_ttc: Decimal
    lignes: list[TotauxLigne] = []


class EcheancePaiement(BaseModel):
    """Une echeance d'un echeancier de paiement."""

    libelle: str
    date_echeance: datetime.date
    pourcentage: Decimal = Decimal("0")
    montant: Decimal = Decimal("0")
    mode_paiement: str = MODE_PAIEMENT_DEFAUT
    statut: StatutEcheance = StatutEcheance.PENDING

    @field_validator("pourcentage", "montant", mode="before")
    @classmethod
    def _coerce_decimal(cls, v: object) -> Decimal:
        return _en_decimal(v)


class ProfilClient(BaseModel):
    """Coordonnees du client (affichage seulement)."""

    nom: str
    adresse: str = ""
    courriel: str = ""
    siret: str = ""
    numero_tva: str = ""


class DocumentCommercial(BaseModel):
    """Champs communs aux factures et devis."""

    numero: str
    client: ProfilClient
    titre: str = ""
    date_emission: datetime.date
    lignes: list[LigneDocument] = []
    echeances: list[EcheancePaiement] = []
    conditions_paiement: str = ""
    notes: str = ""

    @property
    def totaux(self) -> Totaux:
        """Totaux recalcules depuis les lignes. Leve ErreurValidation."""
        from gestcom.documents.totaux import calculer_totaux

        return calculer_totaux(self.lignes)


class Facture(DocumentCommercial):
    """Facture avec suivi du montant paye."""

    date_echeance: datetime.date
    statut: InvoiceStatus = InvoiceStatus.DRAFT
    montant_paye: Decimal = Decimal("0")
    date_paiement: Optional[datetime.date] = None
    devis_origine: Optional[str] = None

    @field_validator("montant_paye", mode="before")
    @classmethod
    def _coerce_decimal(cls, v: object) -> Decimal:
        return _en_decimal(v)

    @property
    def solde_restant(self) -> Decimal:
        """Total TTC moins le montant paye (negatif si trop-percu)."""
        from gestcom.documents.totaux import calculer_solde

        return calculer_solde(self.totaux.total_ttc, self.montant_paye)

    @property
    def trop_percu(self) -> bool:
        return self.solde_restant < 0


class Devis(DocumentCommercial):
    """Devis avec date limite de validite."""

    valide_jusqu_au: datetime.date
    statut: QuoteStatus = QuoteStatus.DRAFT
    date_acceptation: Optional[datetime.date] = None
    facture_liee: Optional[str] = None


class CoordonneesBancaires(BaseModel):
    """Coordonnees bancaires imprimees en pied de facture."""

    model_config = ConfigDict(frozen=True)

    banque: str = ""
    titulaire: str = ""
    iban: str = ""
    bic: str = ""


class ProfilOrganisation(BaseModel):
    """Profil de l'organisme de formation emetteur."""

    model_config = ConfigDict(frozen=True)

    nom: str = "Mon Organisme de Formation"
    adresse: str = ""
    siret: str = ""
    numero_tva: str = ""
    numero_declaration_activite: str = ""
    courriel: str = ""
    telephone: str = ""
    banque: Optional[CoordonneesBancaires] = None


class ConfigTheme(BaseModel):
    """Couleurs et logo des documents generes."""

    model_config = ConfigDict(frozen=True)

    couleur_primaire: str = "#1a365d"
    couleur_secondaire: str = "#e2e8f0"
    logo_path: Optional[Path] = None


class ConfigGestcom(BaseModel):
    """Contenu du fichier config.yaml."""

    organisation: ProfilOrganisation = ProfilOrganisation()
    theme: ConfigTheme = ConfigTheme()
    delai_paiement_jours: int = 30
    validite_devis_jours: int = 30
