"""Bandeaux d'urgence derives (jamais stockes) pour devis et echeances.

Le nombre de jours est une difference de jours calendaires entre la date
limite et le moment du rendu: l'heure est ignoree.
"""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel


SEUIL_URGENT_JOURS = 3

DateOuMoment = Union[datetime.date, datetime.datetime]
Delai = Literal["expired", "today", "urgent", "normal"]


class UrgenceDevis(str, Enum):
    """Etat d'affichage d'un devis selon sa date de validite."""

    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


class EtatValidite(BaseModel):
    """Urgence d'un devis avec le nombre de jours restants."""

    urgence: UrgenceDevis
    jours_restants: int

    @property
    def message(self) -> str:
        """Libelle du bandeau."""
        jours = self.jours_restants
        if jours < 0:
            n = -jours
            return f"Expiré depuis {n} jour{'s' if n > 1 else ''}"
        if jours == 0:
            return "Expire aujourd'hui"
        return f"Expire dans {jours} jour{'s' if jours > 1 else ''}"


def _en_date(valeur: DateOuMoment) -> datetime.date:
    # datetime est une sous-classe de date
    if isinstance(valeur, datetime.datetime):
        return valeur.date()
    return valeur


def jours_restants(echeance: DateOuMoment, maintenant: DateOuMoment) -> int:
    """Nombre de jours calendaires entre maintenant et l'echeance.

    Negatif si l'echeance est passee, 0 si elle tombe aujourd'hui.
    """
    return (_en_date(echeance) - _en_date(maintenant)).days


def classer_delai(jours: int) -> Delai:
    """Classe un nombre de jours restants: expire, aujourd'hui, urgent (1-3), normal."""
    if jours < 0:
        return "expired"
    if jours == 0:
        return "today"
    if jours <= SEUIL_URGENT_JOURS:
        return "urgent"
    return "normal"


def deriver_urgence_devis(
    valide_jusqu_au: DateOuMoment,
    maintenant: DateOuMoment | None = None,
) -> EtatValidite:
    """Derive l'urgence d'un devis a partir de sa date de validite.

    Args:
        valide_jusqu_au: Date limite de validite du devis.
        maintenant: Moment du rendu (defaut: maintenant).

    Returns:
        EtatValidite: expired si jours < 0, expiring_soon si 0 <= jours <= 3,
        valid sinon.
    """
    if maintenant is None:
        maintenant = datetime.datetime.now()

    jours = jours_restants(valide_jusqu_au, maintenant)
    if jours < 0:
        urgence = UrgenceDevis.EXPIRED
    elif jours <= SEUIL_URGENT_JOURS:
        urgence = UrgenceDevis.EXPIRING_SOON
    else:
        urgence = UrgenceDevis.VALID

    return EtatValidite(urgence=urgence, jours_restants=jours)
