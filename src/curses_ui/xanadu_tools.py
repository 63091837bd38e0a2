import getpass
import logging
import sqlite3

from curses_ui.awesome_input import AwesomeInput
from curses_ui.awesome_menu import QUITTER, AwesomeMenu
from curses_ui.text_viewer import TextViewer
from curses_ui.tree_browser import RecordChosen, UserTreeBrowser
from database.journal import (
    RESULTAT_ECHEC,
    RESULTAT_OK,
    creer_journal,
    enregistrer_operation,
    lister_operations,
)
from xanadu_core.accounts import generer_identifiant, verifier_mot_de_passe
from xanadu_core.directory import LdapDirectory
from xanadu_core.errors import DirectoryConnectionError, XanaduError

logger = logging.getLogger(__name__)

APP_TITLE = "XANADU - ADMINISTRATION ACTIVE DIRECTORY"
PRESS_ANY_KEY = "Appuyez sur une touche pour continuer"
JOURNAL_LIMIT = 200


class XanaduTools:
    def __init__(self, config, directory=None, terminal=None, ui=None):
        self.config = config
        self.directory = directory
        self.ui = ui
        self.terminal = terminal if terminal else ui.terminal
        self.operateur = config.bind_principal or getpass.getuser()
        self.actions = [
            ("1. Parcourir les utilisateurs", self.browse_users),
            ("2. Créer un utilisateur", self.create_user),
            ("3. Réinitialiser un mot de passe", self.reset_password),
            ("4. Activer / désactiver un compte", self.toggle_account),
            ("5. Supprimer un utilisateur", self.delete_user),
            ("6. Journal des opérations", self.show_journal),
            ("7. Aide", self.show_help),
        ]

    # ---- écran ----
    def _header(self, title):
        if self.ui:
            self.ui.draw_header(title, self.config.server)

    def _notify(self, message, is_error=False, wait=True):
        if is_error:
            logger.error(message)
        if self.ui:
            self.ui.draw_footer(message=message, is_error=is_error)
        else:
            self.terminal.show_message(message, is_error=is_error)
        if wait:
            self.terminal.show_message(PRESS_ANY_KEY)
            self.terminal.read_key()
        if self.ui:
            self.ui.draw_footer()

    def _ask(self, prompt, default_text="", secret=False):
        return AwesomeInput(self.terminal, prompt=f" {prompt} ", default_text=default_text, secret=secret).render()

    def _confirm(self, question, default_yes=False):
        options = ["Oui", "Non"] if default_yes else ["Non", "Oui"]
        choice = AwesomeMenu(question, options, terminal=self.terminal, quit_key=self.config.quit_key).render()
        return isinstance(choice, int) and options[choice] == "Oui"

    def _ask_new_password(self, identifiant):
        while True:
            password = self._ask(f"Nouveau mot de passe pour {identifiant}", secret=True)
            if password is None:
                return None
            erreurs = verifier_mot_de_passe(password, identifiant)
            if erreurs:
                self._notify("Mot de passe refusé : " + ", ".join(erreurs), is_error=True)
                continue
            confirmation = self._ask("Confirmer le mot de passe", secret=True)
            if confirmation is None:
                return None
            if confirmation != password:
                self._notify("Les mots de passe ne correspondent pas", is_error=True)
                continue
            return password

    def _choose_user(self, title):
        self._header(title)
        outcome = UserTreeBrowser(
            self.directory,
            terminal=self.terminal,
            root_path=self.config.browse_root,
            quit_key=self.config.quit_key,
            max_steps=self.config.max_browse_steps,
        ).select()
        if isinstance(outcome, RecordChosen):
            return outcome.record
        logger.info(f"{title} : sélection abandonnée ({outcome.reason})")
        return None

    def _executer(self, action, cible, operation, *args, **kwargs):
        """Exécute une modification de l'annuaire et la trace dans le journal."""
        try:
            result = operation(*args, **kwargs)
        except XanaduError as exc:
            enregistrer_operation(self.config.journal_path, self.operateur, action, cible, RESULTAT_ECHEC, str(exc))
            raise
        enregistrer_operation(self.config.journal_path, self.operateur, action, cible, RESULTAT_OK)
        return result

    # ---- session ----
    def connect(self):
        if self.directory is not None:
            return True

        password = self.config.bind_password()
        if password is None:
            self._header("Connexion au domaine")
            password = self._ask(f"Mot de passe de {self.config.bind_principal}", secret=True)
            if password is None:
                return False

        try:
            self.directory = LdapDirectory.connect(self.config, password)
        except DirectoryConnectionError as exc:
            self._notify(str(exc), is_error=True)
            return False
        return True

    def close(self):
        if self.directory is not None and hasattr(self.directory, "close"):
            self.directory.close()

    # ---- opérations ----
    def browse_users(self):
        record = self._choose_user("Parcourir les utilisateurs")
        if record is None:
            return
        TextViewer(f"Fiche de {record.label}", record.summary_lines(), terminal=self.terminal).render()

    def create_user(self):
        self._header("Créer un utilisateur")
        prenom = self._ask("Prénom")
        if not prenom:
            return
        nom = self._ask("Nom")
        if not nom:
            return
        identifiant = self._ask("Identifiant", default_text=generer_identifiant(prenom, nom))
        if not identifiant:
            return
        password = self._ask_new_password(identifiant)
        if password is None:
            return

        record = self._executer(
            "creation", identifiant, self.directory.create_user,
            self.config.default_user_ou, prenom, nom, identifiant, password,
            self.config.upn_suffix, must_change_password=True,
        )
        self._notify(f"Compte {record.identifier} créé dans {record.container}")

    def reset_password(self):
        record = self._choose_user("Réinitialiser un mot de passe")
        if record is None:
            return
        password = self._ask_new_password(record.identifier)
        if password is None:
            return
        must_change = self._confirm("Exiger un changement à la prochaine connexion ?", default_yes=True)

        self._executer(
            "reinitialisation_mdp", record.identifier, self.directory.reset_password,
            record.identifier, password, must_change_password=must_change,
        )
        self._notify(f"Mot de passe de {record.identifier} réinitialisé")

    def toggle_account(self):
        record = self._choose_user("Activer / désactiver un compte")
        if record is None:
            return
        verbe = "Désactiver" if record.enabled else "Activer"
        if not self._confirm(f"{verbe} le compte {record.identifier} ?"):
            return

        updated = self._executer(
            "desactivation" if record.enabled else "activation", record.identifier,
            self.directory.set_enabled, record.identifier, not record.enabled,
        )
        etat = "actif" if updated.enabled else "désactivé"
        self._notify(f"Le compte {updated.identifier} est maintenant {etat}")

    def delete_user(self):
        record = self._choose_user("Supprimer un utilisateur")
        if record is None:
            return
        if not self._confirm(f"Supprimer définitivement {record.label} ({record.identifier}) ?"):
            return

        self._executer("suppression", record.identifier, self.directory.delete_user, record.identifier)
        self._notify(f"Compte {record.identifier} supprimé")

    def show_journal(self):
        rows = lister_operations(self.config.journal_path, JOURNAL_LIMIT)
        if not rows:
            self._notify("Le journal est vide")
            return
        lines = []
        for created_at, operateur, action, cible, resultat, detail in rows:
            lines.append(f"{created_at}  {resultat:<5} {action:<22} {cible}  [{operateur}]")
            if detail:
                lines.append(f"    {detail}")
        TextViewer("JOURNAL DES OPÉRATIONS", lines, terminal=self.terminal).render()

    def show_help(self):
        config = self.config
        help_text = f"""    MENU PRINCIPAL
    1  Parcourir           (fiche d'un compte choisi dans l'arborescence des OU)
    2  Créer               (nouveau compte dans {config.default_user_ou})
    3  Mot de passe        (réinitialisation, changement exigé à la connexion)
    4  Activer/désactiver  (bascule l'état du compte)
    5  Supprimer           (après confirmation)
    6  Journal             (dernières opérations effectuées depuis cette console)
    {config.quit_key} / ÉCHAP            Quitter

    NAVIGATION DANS LES OU
    ↑/↓ choisir, ENTRÉE ouvrir l'OU ou choisir le compte, "↑ .." remonter,
    ÉCHAP ou {config.quit_key} abandonner.

    SESSION
    - Contrôleur de domaine : {config.server}:{config.port} ({'LDAPS' if config.use_ssl else 'LDAP'})
    - Compte de service : {self.operateur}
    - Racine de navigation : {config.browse_root}
    - Journal : {config.journal_path}
    - Log : {config.log_file if config.logging_enabled else 'désactivé'}
    """.rstrip("\n")
        TextViewer("AIDE", help_text, terminal=self.terminal).render()

    def run(self):
        creer_journal(self.config.journal_path)
        labels = [label for label, _ in self.actions]

        while True:
            self._header(APP_TITLE)
            if self.ui:
                self.ui.draw_footer()

            choice = AwesomeMenu("Menu principal", labels, terminal=self.terminal,
                                 quit_key=self.config.quit_key).render()
            if choice is None or choice == QUITTER:
                break

            label, handler = self.actions[choice]
            try:
                handler()
            except XanaduError as exc:
                self._notify(f"{label[3:]} : {exc}", is_error=True)
            except sqlite3.Error as exc:
                self._notify(f"Journal inaccessible : {exc}", is_error=True)
