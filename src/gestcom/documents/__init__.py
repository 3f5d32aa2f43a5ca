"""Module documents: factures, devis, totaux, echeanciers et rendu.

Fournit le calcul des totaux HT/TVA/TTC, la validation non bloquante des
echeanciers de paiement, l'urgence d'affichage des devis et le registre
YAML des documents.
"""

from gestcom.documents.echeancier import (
    RapportEcheancier,
    completer_reste,
    echeancier_predefini,
    montant_depuis_pourcentage,
    pourcentage_depuis_montant,
    texte_conditions,
    valider_echeancier,
)
from gestcom.documents.erreurs import ErreurValidation
from gestcom.documents.modeles import (
    ConfigTheme,
    Devis,
    EcheancePaiement,
    Facture,
    InvoiceStatus,
    LigneDocument,
    ProfilClient,
    ProfilOrganisation,
    QuoteStatus,
    StatutEcheance,
    Totaux,
)
from gestcom.documents.totaux import (
    arrondir,
    calculer_solde,
    calculer_totaux,
    taux_depuis_montant,
    ventiler_tva,
)
from gestcom.documents.urgence import (
    EtatValidite,
    UrgenceDevis,
    classer_delai,
    deriver_urgence_devis,
    jours_restants,
)

__all__ = [
    "ConfigTheme",
    "Devis",
    "EcheancePaiement",
    "ErreurValidation",
    "EtatValidite",
    "Facture",
    "InvoiceStatus",
    "LigneDocument",
    "ProfilClient",
    "ProfilOrganisation",
    "QuoteStatus",
    "RapportEcheancier",
    "StatutEcheance",
    "Totaux",
    "UrgenceDevis",
    "arrondir",
    "calculer_solde",
    "calculer_totaux",
    "classer_delai",
    "completer_reste",
    "deriver_urgence_devis",
    "echeancier_predefini",
    "jours_restants",
    "montant_depuis_pourcentage",
    "pourcentage_depuis_montant",
    "taux_depuis_montant",
    "texte_conditions",
    "valider_echeancier",
    "ventiler_tva",
]
