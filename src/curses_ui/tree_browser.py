"""
Navigateur d'unités d'organisation.

Descend dans l'arborescence de l'annuaire, un niveau à la fois, jusqu'à ce que
l'utilisateur choisisse un compte ou abandonne. Chaque étape relit l'annuaire :
aucun sous-arbre n'est gardé en cache.
"""
import logging
from dataclasses import dataclass

from xanadu_core.errors import DirectoryQueryError, RecordNotFound
from xanadu_core.models import Container, Record, child_path, leaf_name, parent_path, same_dn

from .awesome_menu import QUITTER, AwesomeMenu
from .ui_handler import UIHandler

logger = logging.getLogger(__name__)

NOTHING_HERE = "Rien ici"
UP_LABEL = "↑ .."

REASON_USER = "user"
REASON_EMPTY = "empty"
REASON_NOT_FOUND = "not_found"
REASON_STEP_LIMIT = "step_limit"


@dataclass(frozen=True)
class UpEntry:
    @property
    def label(self):
        return UP_LABEL


@dataclass(frozen=True)
class ContainerEntry:
    container: Container

    @property
    def label(self):
        return f"[OU] {self.container.name}"


@dataclass(frozen=True)
class RecordEntry:
    record: Record

    @property
    def label(self):
        return f"{self.record.label} ({self.record.identifier})"


@dataclass(frozen=True)
class RecordChosen:
    record: Record


@dataclass(frozen=True)
class Cancelled:
    reason: str = REASON_USER


class UserTreeBrowser:
    """
    Sélection d'un compte utilisateur par navigation dans les OU.

    `select()` renvoie toujours un RecordChosen ou un Cancelled : les erreurs de
    l'annuaire sont signalées sur le terminal et dans le journal, jamais propagées.
    """

    def __init__(self, directory, terminal=None, root_path=None, quit_key="q",
                 max_steps=1000, menu_class=AwesomeMenu):
        self.directory = directory
        self.terminal = terminal if terminal else UIHandler().terminal
        self.root_path = root_path or directory.base_dn
        self.quit_key = quit_key
        self.max_steps = max_steps
        self.menu_class = menu_class

    def is_root(self, path):
        return same_dn(path, self.root_path)

    def _listing(self, query, path, what):
        try:
            return list(query(path))
        except DirectoryQueryError as exc:
            logger.warning(f"Lecture des {what} de {path} impossible : {exc}")
            self.terminal.show_message(f"Lecture des {what} impossible : {exc}", is_error=True)
            return []

    def build_entries(self, path):
        """Entrées du menu pour `path` : remonter, puis les OU, puis les comptes."""
        containers = self._listing(self.directory.list_child_containers, path, "OU")
        records = self._listing(self.directory.list_records, path, "utilisateurs")

        containers.sort(key=lambda c: c.name.lower())
        records.sort(key=lambda r: r.label.lower())

        entries = []
        if not self.is_root(path):
            entries.append(UpEntry())
        entries.extend(ContainerEntry(c) for c in containers)
        entries.extend(RecordEntry(r) for r in records)
        return entries

    def _resolve(self, record):
        # Relecture : le compte a pu changer ou disparaître depuis l'affichage
        try:
            fresh = self.directory.fetch_record(record.identifier)
        except RecordNotFound as exc:
            logger.error(f"{exc} (sélectionné dans {record.container})")
            self.terminal.show_message(str(exc), is_error=True)
            return Cancelled(REASON_NOT_FOUND)
        except DirectoryQueryError as exc:
            logger.error(f"Relecture de {record.identifier} impossible : {exc}")
            self.terminal.show_message(f"Relecture impossible : {exc}", is_error=True)
            return Cancelled(REASON_NOT_FOUND)
        logger.info(f"Compte sélectionné : {fresh.identifier} ({fresh.path})")
        return RecordChosen(fresh)

    def select(self):
        current = self.root_path

        for _ in range(self.max_steps):
            entries = self.build_entries(current)
            if not entries:
                self.terminal.show_message(NOTHING_HERE)
                return Cancelled(REASON_EMPTY)

            title = leaf_name(current) or current
            if all(isinstance(e, UpEntry) for e in entries):
                self.terminal.show_message(NOTHING_HERE)
                title = f"{title} ({NOTHING_HERE.lower()})"

            menu = self.menu_class(title, [e.label for e in entries],
                                   terminal=self.terminal, quit_key=self.quit_key)
            choice = menu.render()
            if choice is None or choice == QUITTER:
                return Cancelled(REASON_USER)

            entry = entries[choice]
            if isinstance(entry, UpEntry):
                parent = parent_path(current)
                if self.is_root(current) or parent is None:
                    return Cancelled(REASON_USER)
                current = parent
            elif isinstance(entry, ContainerEntry):
                current = child_path(entry.container.rdn, current)
            else:
                return self._resolve(entry.record)

        logger.warning(f"Navigation interrompue après {self.max_steps} étapes")
        return Cancelled(REASON_STEP_LIMIT)
