"""GestCom - Gestion commerciale (factures, devis, echeanciers)."""

__version__ = "0.1.0"
