"""Erreurs du module documents."""


class ErreurValidation(ValueError):
    """Donnees de document invalides (ligne malformee, montant paye negatif).

    Seul echec bloquant du calcul: l'appelant doit afficher un etat d'erreur
    plutot qu'un document partiellement calcule.
    """
