import re
import unicodedata

SAM_MAX_LENGTH = 20
PASSWORD_MIN_LENGTH = 12


def sans_accents(text):
    normalized = unicodedata.normalize("NFKD", text)
    return "".join(c for c in normalized if not unicodedata.combining(c))


def generer_identifiant(prenom, nom):
    """
    Identifiant Xanadu : prenom.nom en minuscules, sans accents ni espaces,
    limité aux 20 caractères de sAMAccountName.
    'Éloïse', 'Le Gall' -> 'eloise.legall'
    """
    def nettoyer(part):
        part = sans_accents(part).lower()
        return re.sub(r"[^a-z0-9-]", "", part)

    identifiant = ".".join(p for p in (nettoyer(prenom), nettoyer(nom)) if p)
    return identifiant[:SAM_MAX_LENGTH].rstrip(".-")


def verifier_mot_de_passe(password, identifiant=""):
    """
    Vérifie la politique de complexité du domaine.

    Returns:
        list[str]: les règles non respectées (vide si le mot de passe est accepté).
    """
    erreurs = []
    if len(password) < PASSWORD_MIN_LENGTH:
        erreurs.append(f"au moins {PASSWORD_MIN_LENGTH} caractères")

    categories = [
        any(c.islower() for c in password),
        any(c.isupper() for c in password),
        any(c.isdigit() for c in password),
        any(not c.isalnum() for c in password),
    ]
    if sum(categories) < 3:
        erreurs.append("3 catégories parmi minuscules, majuscules, chiffres, symboles")

    if identifiant and len(identifiant) >= 3 and identifiant.lower() in password.lower():
        erreurs.append("ne doit pas contenir l'identifiant")
    return erreurs
