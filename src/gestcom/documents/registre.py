"""Registre des factures et devis avec persistance YAML.

Stocke les documents dans un fichier YAML avec numerotation sequentielle
par annee (FAC-YYYY-NNNN, DEV-YYYY-NNNN).
"""

from __future__ import annotations

import datetime
import logging
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional, TypeVar

import yaml
from pydantic import BaseModel

from gestcom.documents.erreurs import ErreurValidation
from gestcom.documents.modeles import (
    Devis,
    EcheancePaiement,
    Facture,
    InvoiceStatus,
    QuoteStatus,
    StatutEcheance,
)
from gestcom.documents.totaux import ZERO

logger = logging.getLogger(__name__)

PREFIXE_FACTURE = "FAC"
PREFIXE_DEVIS = "DEV"

D = TypeVar("D", Facture, Devis)

STATUTS_CONVERTIBLES = (QuoteStatus.SENT, QuoteStatus.ACCEPTED)
STATUTS_A_RELANCER = (
    InvoiceStatus.SENT,
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.OVERDUE,
)


class Synthese(BaseModel):
    """Totaux d'une liste de factures."""

    nombre: int
    total_ttc: Decimal
    total_paye: Decimal
    total_du: Decimal


def synthese(factures: Iterable[Facture]) -> Synthese:
    """Somme des TTC, montants payes et restes dus d'une liste de factures."""
    factures = list(factures)
    total_ttc = sum((f.totaux.total_ttc for f in factures), ZERO)
    total_paye = sum((f.montant_paye for f in factures), ZERO)
    return Synthese(
        nombre=len(factures),
        total_ttc=total_ttc,
        total_paye=total_paye,
        total_du=total_ttc - total_paye,
    )


def _filtrer(
    documents: Iterable[D],
    statut: object | None = None,
    recherche: str | None = None,
    date_debut: datetime.date | None = None,
    date_fin: datetime.date | None = None,
    montant_min: Decimal | None = None,
    montant_max: Decimal | None = None,
) -> list[D]:
    """Filtre une liste de documents (criteres combines par ET).

    Raises:
        ErreurValidation: montant_min superieur a montant_max.
    """
    if montant_min is not None and montant_max is not None and montant_min > montant_max:
        raise ErreurValidation(
            f"Montant minimum {montant_min} superieur au montant maximum {montant_max}"
        )

    terme = recherche.strip().lower() if recherche else ""
    resultat: list[D] = []
    for doc in documents:
        if statut is not None and doc.statut != statut:
            continue
        if terme and terme not in doc.numero.lower() and terme not in doc.client.nom.lower():
            continue
        if date_debut is not None and doc.date_emission < date_debut:
            continue
        if date_fin is not None and doc.date_emission > date_fin:
            continue
        if montant_min is not None or montant_max is not None:
            try:
                total = doc.totaux.total_ttc
            except ErreurValidation:
                logger.warning("Document %s ignore par le filtre de montant", doc.numero)
                continue
            if montant_min is not None and total < montant_min:
                continue
            if montant_max is not None and total > montant_max:
                continue
        resultat.append(doc)
    return resultat


def _prochain_numero(prefixe: str, annee: int, numeros: Iterable[str]) -> str:
    debut = f"{prefixe}-{annee}-"
    existants = [
        int(n.removeprefix(debut))
        for n in numeros
        if n.startswith(debut) and n.removeprefix(debut).isdigit()
    ]
    return f"{debut}{max(existants, default=0) + 1:04d}"


class RegistreDocuments:
    """Registre de factures et devis persistant en YAML."""

    def __init__(self, chemin: Path | None = None) -> None:
        self.chemin = chemin or Path("donnees/registre.yaml")
        self._factures: list[Facture] = []
        self._devis: list[Devis] = []
        self._charger()

    def _charger(self) -> None:
        """Charge les documents depuis le fichier YAML."""
        if not self.chemin.exists():
            return
        with open(self.chemin, encoding="utf-8") as f:
            donnees = yaml.safe_load(f) or {}
        self._factures = [Facture.model_validate(d) for d in donnees.get("factures") or []]
        self._devis = [Devis.model_validate(d) for d in donnees.get("devis") or []]

    def _sauvegarder(self) -> None:
        """Sauvegarde les documents dans le fichier YAML."""
        self.chemin.parent.mkdir(parents=True, exist_ok=True)
        donnees = {
            "factures": [f.model_dump(mode="json") for f in self._factures],
            "devis": [d.model_dump(mode="json") for d in self._devis],
        }
        with open(self.chemin, "w", encoding="utf-8") as f:
            yaml.dump(donnees, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    # -- Factures -----------------------------------------------------------

    def ajouter_facture(self, facture: Facture) -> None:
        """Ajoute une facture. Leve ValueError si le numero existe deja."""
        if self.obtenir_facture(facture.numero) is not None:
            raise ValueError(f"Facture {facture.numero} existe deja dans le registre")
        self._factures.append(facture)
        self._sauvegarder()
        logger.info("Facture %s ajoutee (%s)", facture.numero, facture.client.nom)

    def obtenir_facture(self, numero: str) -> Facture | None:
        """Retourne une facture par son numero, ou None."""
        for f in self._factures:
            if f.numero == numero:
                return f
        return None

    def lister_factures(
        self,
        statut: InvoiceStatus | None = None,
        recherche: str | None = None,
        date_debut: datetime.date | None = None,
        date_fin: datetime.date | None = None,
        montant_min: Decimal | None = None,
        montant_max: Decimal | None = None,
    ) -> list[Facture]:
        """Liste les factures, filtrees par statut, numero ou client, periode
        d'emission et fourchette de total TTC (bornes incluses).

        Raises:
            ErreurValidation: montant_min superieur a montant_max.
        """
        return _filtrer(
            self._factures, statut, recherche, date_debut, date_fin, montant_min, montant_max
        )

    def _remplacer_facture(self, numero: str, **champs: object) -> Facture:
        for i, f in enumerate(self._factures):
            if f.numero == numero:
                donnees = f.model_dump()
                donnees.update(champs)
                self._factures[i] = Facture.model_validate(donnees)
                self._sauvegarder()
                return self._factures[i]
        raise ValueError(f"Facture {numero} introuvable")

    def mettre_a_jour_statut_facture(
        self,
        numero: str,
        statut: InvoiceStatus,
        date_paiement: Optional[datetime.date] = None,
    ) -> Facture:
        """Met a jour le statut d'une facture. Leve ValueError si non trouvee."""
        champs: dict[str, object] = {"statut": statut}
        if date_paiement is not None:
            champs["date_paiement"] = date_paiement
        facture = self._remplacer_facture(numero, **champs)
        logger.info("Facture %s: statut %s", numero, statut.value)
        return facture

    def enregistrer_paiement(
        self,
        numero: str,
        montant: Decimal,
        date_paiement: datetime.date,
    ) -> Facture:
        """Ajoute un reglement au montant paye et met le statut a jour.

        Le statut devient PAID quand le solde est nul ou negatif (trop-percu),
        PARTIALLY_PAID sinon. Seules les factures envoyees, partiellement
        payees ou en retard acceptent un reglement.

        Raises:
            ErreurValidation: montant non positif.
            ValueError: facture introuvable ou statut n'acceptant pas de paiement.
        """
        if montant <= 0:
            raise ErreurValidation(f"Montant de paiement invalide: {montant}")

        facture = self.obtenir_facture(numero)
        if facture is None:
            raise ValueError(f"Facture {numero} introuvable")
        if facture.statut not in STATUTS_A_RELANCER:
            raise ValueError(
                f"Facture {numero} au statut '{facture.statut.value}': seules les "
                "factures envoyees, partiellement payees ou en retard acceptent un paiement"
            )

        montant_paye = facture.montant_paye + montant
        solde = facture.totaux.total_ttc - montant_paye
        statut = InvoiceStatus.PAID if solde <= 0 else InvoiceStatus.PARTIALLY_PAID

        facture = self._remplacer_facture(
            numero,
            montant_paye=montant_paye,
            statut=statut,
            date_paiement=date_paiement,
        )
        logger.info(
            "Facture %s: paiement de %s, reste %s (%s)",
            numero, montant, facture.solde_restant, statut.value,
        )
        return facture

    def prochain_numero_facture(self, annee: int) -> str:
        """Prochain numero de facture pour l'annee: FAC-YYYY-NNNN."""
        return _prochain_numero(
            PREFIXE_FACTURE, annee, (f.numero for f in self._factures)
        )

    def factures_en_retard(self, aujourd_hui: datetime.date) -> list[Facture]:
        """Factures envoyees (ou partiellement payees) dont l'echeance est depassee."""
        return [
            f
            for f in self._factures
            if f.statut in STATUTS_A_RELANCER and f.date_echeance < aujourd_hui
        ]

    # -- Devis --------------------------------------------------------------

    def ajouter_devis(self, devis: Devis) -> None:
        """Ajoute un devis. Leve ValueError si le numero existe deja."""
        if self.obtenir_devis(devis.numero) is not None:
            raise ValueError(f"Devis {devis.numero} existe deja dans le registre")
        self._devis.append(devis)
        self._sauvegarder()
        logger.info("Devis %s ajoute (%s)", devis.numero, devis.client.nom)

    def obtenir_devis(self, numero: str) -> Devis | None:
        """Retourne un devis par son numero, ou None."""
        for d in self._devis:
            if d.numero == numero:
                return d
        return None

    def lister_devis(
        self,
        statut: QuoteStatus | None = None,
        recherche: str | None = None,
        date_debut: datetime.date | None = None,
        date_fin: datetime.date | None = None,
        montant_min: Decimal | None = None,
        montant_max: Decimal | None = None,
    ) -> list[Devis]:
        """Liste les devis avec les memes filtres que lister_factures."""
        return _filtrer(
            self._devis, statut, recherche, date_debut, date_fin, montant_min, montant_max
        )

    def _remplacer_devis(self, numero: str, **champs: object) -> Devis:
        for i, d in enumerate(self._devis):
            if d.numero == numero:
                donnees = d.model_dump()
                donnees.update(champs)
                self._devis[i] = Devis.model_validate(donnees)
                self._sauvegarder()
                return self._devis[i]
        raise ValueError(f"Devis {numero} introuvable")

    def mettre_a_jour_statut_devis(
        self,
        numero: str,
        statut: QuoteStatus,
        date: Optional[datetime.date] = None,
    ) -> Devis:
        """Met a jour le statut d'un devis; l'acceptation est datee."""
        champs: dict[str, object] = {"statut": statut}
        devis = self.obtenir_devis(numero)
        if (
            devis is not None
            and statut == QuoteStatus.ACCEPTED
            and devis.statut != QuoteStatus.ACCEPTED
        ):
            champs["date_acceptation"] = date or datetime.date.today()
        devis = self._remplacer_devis(numero, **champs)
        logger.info("Devis %s: statut %s", numero, statut.value)
        return devis

    def prochain_numero_devis(self, annee: int) -> str:
        """Prochain numero de devis pour l'annee: DEV-YYYY-NNNN."""
        return _prochain_numero(PREFIXE_DEVIS, annee, (d.numero for d in self._devis))

    def convertir_devis(
        self,
        numero: str,
        date_emission: datetime.date,
        delai_jours: int = 30,
        numero_facture: Optional[str] = None,
    ) -> Facture:
        """Transforme un devis envoye ou accepte en facture brouillon.

        Les lignes et l'echeancier sont copies (echeances remises a 'pending').
        Un devis 'sent' passe a 'accepted'; le devis reste dans le registre.

        Raises:
            ValueError: devis introuvable, statut non convertible ou deja converti.
        """
        devis = self.obtenir_devis(numero)
        if devis is None:
            raise ValueError(f"Devis {numero} introuvable")
        if devis.statut not in STATUTS_CONVERTIBLES:
            raise ValueError(
                f"Devis {numero} au statut '{devis.statut.value}': seuls les devis "
                "envoyes ou acceptes peuvent etre factures"
            )
        if devis.facture_liee is not None:
            raise ValueError(f"Devis {numero} deja converti en facture {devis.facture_liee}")

        numero_facture = numero_facture or self.prochain_numero_facture(date_emission.year)
        facture = Facture(
            numero=numero_facture,
            client=devis.client,
            titre=devis.titre,
            date_emission=date_emission,
            date_echeance=date_emission + datetime.timedelta(days=delai_jours),
            lignes=[ligne.model_copy() for ligne in devis.lignes],
            echeances=[
                EcheancePaiement.model_validate(
                    e.model_dump() | {"statut": StatutEcheance.PENDING}
                )
                for e in devis.echeances
            ],
            conditions_paiement=devis.conditions_paiement,
            notes=devis.notes,
            devis_origine=devis.numero,
        )
        self.ajouter_facture(facture)

        champs: dict[str, object] = {"facture_liee": facture.numero}
        if devis.statut == QuoteStatus.SENT:
            champs["statut"] = QuoteStatus.ACCEPTED
            champs["date_acceptation"] = date_emission
        self._remplacer_devis(numero, **champs)

        logger.info("Devis %s converti en facture %s", numero, facture.numero)
        return facture
