class XanaduError(Exception):
    """Erreur de base de l'outil d'administration."""


class ConfigurationError(XanaduError):
    """Fichier de configuration absent, illisible ou incomplet."""


class DirectoryError(XanaduError):
    """Erreur de base de l'annuaire."""


class DirectoryConnectionError(DirectoryError):
    """Connexion ou authentification impossible auprès du contrôleur de domaine."""


class DirectoryQueryError(DirectoryError):
    """Une recherche dans l'annuaire a échoué (serveur injoignable, accès refusé...)."""


class RecordNotFound(DirectoryError):
    """Le compte demandé n'existe pas (ou plus) dans l'annuaire."""

    def __init__(self, identifier):
        super().__init__(f"Utilisateur introuvable : {identifier}")
        self.identifier = identifier


class DirectoryWriteError(DirectoryError):
    """Le serveur a refusé une création, une modification ou une suppression."""
