"""
Configuration pytest et doublures partagées.

- Ajoute 'src' au sys.path (le code s'exécute depuis src/, comme main.py).
- FakeTerminal : terminal scripté (touches prédéfinies, écritures enregistrées).
- FakeDirectory : annuaire en mémoire avec la même interface que LdapDirectory.
"""
import os
import sys

import pytest

_SRC_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)

from xanadu_core.errors import DirectoryQueryError, DirectoryWriteError, RecordNotFound  # noqa: E402
from xanadu_core.models import (  # noqa: E402
    UAC_ACCOUNTDISABLE,
    UAC_NORMAL_ACCOUNT,
    Container,
    Record,
    normalize_dn,
    parent_path,
)

BASE_DN = "DC=xanadu,DC=local"
ROOT_DN = "OU=Xanadu,DC=xanadu,DC=local"


class OutOfKeys(Exception):
    """Le test n'a pas prévu assez de touches."""


class FakeTerminal:
    def __init__(self, keys=(), size=(24, 80)):
        self.keys = list(keys)
        self._size = size
        self.writes = []
        self.messages = []
        self.cursor_visible = True
        self.reads = 0
        self.clears = 0

    def size(self):
        return self._size

    def read_key(self):
        if not self.keys:
            raise OutOfKeys("plus de touche à lire")
        self.reads += 1
        return self.keys.pop(0)

    def type_text(self, text):
        """Ajoute les touches d'une saisie suivie de ENTRÉE."""
        self.keys.extend(list(text) + ["ENTER"])

    def write(self, y, x, text, style="normal"):
        self.writes.append((y, x, text, style))

    def clear(self):
        self.clears += 1

    def refresh(self):
        pass

    def set_cursor_visible(self, visible):
        previous = self.cursor_visible
        self.cursor_visible = visible
        return previous

    def show_message(self, text, is_error=False):
        self.messages.append((text, is_error))

    def highlighted(self):
        return [text.strip() for _, _, text, style in self.writes if style == "highlight"]

    def errors(self):
        return [text for text, is_error in self.messages if is_error]


class FakeDirectory:
    def __init__(self, base_dn=BASE_DN):
        self.base_dn = base_dn
        self.containers = {}
        self.records = {}
        self.failing = set()
        self.fetch_calls = []
        self.passwords = {}
        self.closed = False

    # ---- construction de l'arbre ----
    def add_ou(self, parent, name):
        dn = f"OU={name},{parent}"
        self.containers.setdefault(normalize_dn(parent), []).append(Container(name=name, path=dn))
        return dn

    def add_user(self, parent, cn, identifier, display_name=None, uac=UAC_NORMAL_ACCOUNT):
        record = Record(
            identifier=identifier,
            name=cn,
            path=f"CN={cn},{parent}",
            display_name=display_name,
            attributes={"sAMAccountName": identifier, "userAccountControl": uac},
        )
        self.records[identifier] = record
        return record

    def remove_user(self, identifier):
        del self.records[identifier]

    # ---- interface annuaire ----
    def list_child_containers(self, path):
        if ("containers", normalize_dn(path)) in self.failing:
            raise DirectoryQueryError(f"accès refusé à {path}")
        return list(self.containers.get(normalize_dn(path), []))

    def list_records(self, path):
        if ("records", normalize_dn(path)) in self.failing:
            raise DirectoryQueryError(f"accès refusé à {path}")
        return [r for r in self.records.values() if normalize_dn(parent_path(r.path)) == normalize_dn(path)]

    def fetch_record(self, identifier):
        self.fetch_calls.append(identifier)
        try:
            return self.records[identifier]
        except KeyError:
            raise RecordNotFound(identifier) from None

    def fail(self, kind, path):
        self.failing.add((kind, normalize_dn(path)))

    def create_user(self, container_path, first_name, last_name, identifier, password,
                    upn_suffix, must_change_password=True):
        if identifier in self.records:
            raise DirectoryWriteError(f"L'identifiant {identifier} est déjà utilisé")
        record = self.add_user(container_path, f"{first_name} {last_name.upper()}", identifier,
                               display_name=f"{first_name} {last_name.upper()}")
        self.passwords[identifier] = (password, must_change_password)
        return record

    def reset_password(self, identifier, password, must_change_password=True):
        self.fetch_record(identifier)
        self.passwords[identifier] = (password, must_change_password)

    def set_enabled(self, identifier, enabled):
        record = self.fetch_record(identifier)
        uac = record.user_account_control
        uac = uac & ~UAC_ACCOUNTDISABLE if enabled else uac | UAC_ACCOUNTDISABLE
        return self.add_user(parent_path(record.path), record.name, identifier, record.display_name, uac)

    def delete_user(self, identifier):
        record = self.fetch_record(identifier)
        self.remove_user(identifier)
        return record

    def close(self):
        self.closed = True


@pytest.fixture
def terminal():
    return FakeTerminal()


@pytest.fixture
def directory():
    """
    OU=Xanadu
      ├─ OU=Compta      -> Jean DUPONT (jean.dupont), Alice MARTIN (alice.martin)
      │    └─ OU=Paie   -> (vide)
      └─ OU=Direction   -> Zoé LEROY (zoe.leroy)
    """
    d = FakeDirectory()
    compta = d.add_ou(ROOT_DN, "Compta")
    d.add_ou(ROOT_DN, "Direction")
    d.add_ou(compta, "Paie")
    d.add_user(compta, "Jean DUPONT", "jean.dupont", display_name="Jean DUPONT")
    d.add_user(compta, "Alice MARTIN", "alice.martin", display_name="Alice MARTIN")
    d.add_user(f"OU=Direction,{ROOT_DN}", "Zoé LEROY", "zoe.leroy")
    return d
