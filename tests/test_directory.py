import re

import pytest
from ldap3 import LEVEL, MODIFY_REPLACE, SUBTREE
from ldap3.core.exceptions import LDAPException

from config.config_loader import Config
from xanadu_core import directory as directory_module
from xanadu_core.directory import PAGE_SIZE, PAGED_RESULTS_OID, LdapDirectory, encode_password
from xanadu_core.errors import (
    DirectoryConnectionError,
    DirectoryQueryError,
    DirectoryWriteError,
    RecordNotFound,
)
from xanadu_core.models import parent_path, same_dn

from conftest import BASE_DN, ROOT_DN

COMPTA = f"OU=Compta,{ROOT_DN}"


class RecordingConnection:
    """Connexion ldap3 minimale : répond aux recherches depuis une liste d'entrées."""

    def __init__(self):
        self.entries = []
        self.result = {'result': 0, 'description': 'success'}
        self.response = []
        self.searches = []
        self.writes = []
        self.search_error = None
        self.refused = set()
        self.server_page_limit = 1000
        self.unbound = False

    def add_ou(self, dn, name):
        self.entries.append({'dn': dn, 'kind': 'ou', 'attributes': {'name': name, 'ou': [name]}})

    def add_user(self, dn, cn, sam, uac=512, **extra):
        attributes = {'cn': cn, 'sAMAccountName': sam, 'userAccountControl': uac, 'memberOf': []}
        attributes.update(extra)
        self.entries.append({'dn': dn, 'kind': 'user', 'attributes': attributes})

    def search(self, search_base, search_filter, search_scope, attributes, paged_size=None, paged_cookie=None):
        self.searches.append((search_base, search_filter, search_scope))
        if self.search_error:
            raise self.search_error

        if search_scope == LEVEL:
            kind = 'ou' if 'organizationalUnit' in search_filter else 'user'
            found = [e for e in self.entries
                     if e['kind'] == kind and same_dn(parent_path(e['dn']) or '', search_base)]
        elif search_scope == SUBTREE:
            sam = re.search(r'sAMAccountName=([^)]*)', search_filter).group(1)
            found = [e for e in self.entries
                     if e['kind'] == 'user' and e['attributes']['sAMAccountName'] == sam]
        else:
            found = [e for e in self.entries if same_dn(e['dn'], search_base)]

        # Pagination simple : le cookie porte la position de la page suivante
        start = int(paged_cookie or b'0')
        size = min(paged_size or len(found), self.server_page_limit)
        page, rest = found[start:start + size], found[start + size:]
        cookie = str(start + size).encode() if rest else b''
        self.result = {'result': 0, 'description': 'success',
                       'controls': {PAGED_RESULTS_OID: {'value': {'size': len(found), 'cookie': cookie}}}}

        self.response = [{'type': 'searchResEntry', 'dn': e['dn'], 'attributes': dict(e['attributes'])}
                         for e in page]
        self.response.append({'type': 'searchResRef', 'uri': ['ldap://DomainDnsZones.xanadu.local/']})
        return True

    def _record_write(self, *call):
        self.writes.append(call)
        if call[0] in self.refused:
            self.result = {'result': 53, 'description': 'unwillingToPerform', 'message': ''}
            return False
        self.result = {'result': 0, 'description': 'success'}
        return True

    def add(self, dn, attributes=None):
        if not self._record_write('add', dn, attributes):
            return False
        self.add_user(dn, attributes['cn'], attributes['sAMAccountName'],
                      uac=int(attributes['userAccountControl']))
        return True

    def modify(self, dn, changes):
        if not self._record_write('modify', dn, changes):
            return False
        uac = changes.get('userAccountControl')
        if uac:
            for e in self.entries:
                if same_dn(e['dn'], dn):
                    e['attributes']['userAccountControl'] = int(uac[0][1][0])
        return True

    def delete(self, dn):
        if not self._record_write('delete', dn):
            return False
        self.entries = [e for e in self.entries if not same_dn(e['dn'], dn)]
        return True

    def unbind(self):
        self.unbound = True


@pytest.fixture
def conn():
    c = RecordingConnection()
    c.add_ou(COMPTA, "Compta")
    c.add_ou(f"OU=Direction,{ROOT_DN}", "Direction")
    c.add_user(f"CN=Jean DUPONT,{COMPTA}", "Jean DUPONT", "jean.dupont",
               displayName="Jean DUPONT", memberOf=[f"CN=Paie,{BASE_DN}"])
    c.add_user(f"CN=Alice MARTIN,{COMPTA}", "Alice MARTIN", "alice.martin", uac=514)
    return c


@pytest.fixture
def directory(conn):
    return LdapDirectory(conn, BASE_DN)


def test_list_child_containers_one_level(directory, conn):
    containers = directory.list_child_containers(ROOT_DN)
    assert sorted(c.name for c in containers) == ["Compta", "Direction"]
    assert conn.searches[-1][2] == LEVEL


def test_list_records_skips_references(directory):
    records = directory.list_records(COMPTA)
    assert sorted(r.identifier for r in records) == ["alice.martin", "jean.dupont"]
    jean = next(r for r in records if r.identifier == "jean.dupont")
    assert jean.label == "Jean DUPONT"
    assert jean.attributes["memberOf"] == [f"CN=Paie,{BASE_DN}"]
    assert jean.container == COMPTA


def test_fetch_record_searches_whole_domain(directory, conn):
    record = directory.fetch_record("alice.martin")
    assert record.identifier == "alice.martin"
    assert not record.enabled
    assert conn.searches[-1][0] == BASE_DN
    assert conn.searches[-1][2] == SUBTREE


def test_fetch_record_escapes_filter(directory, conn):
    with pytest.raises(RecordNotFound) as exc_info:
        directory.fetch_record("x*)(cn=*")
    assert exc_info.value.identifier == "x*)(cn=*"
    assert "\\2a" in conn.searches[-1][1]


def test_search_failure_becomes_query_error(directory, conn):
    conn.search_error = LDAPException("socket fermé")
    with pytest.raises(DirectoryQueryError):
        directory.list_records(COMPTA)


def test_refused_search_becomes_query_error(directory, conn):
    conn.search = lambda **kwargs: setattr(conn, 'result', {'result': 32, 'description': 'noSuchObject'})
    with pytest.raises(DirectoryQueryError, match="noSuchObject"):
        directory.list_child_containers(f"OU=Absente,{ROOT_DN}")


def test_large_ou_is_read_page_by_page(directory, conn):
    for i in range(1200):
        conn.add_user(f"CN=Stagiaire {i:04d},{ROOT_DN}", f"Stagiaire {i:04d}", f"stagiaire{i:04d}")

    records = directory.list_records(ROOT_DN)

    assert len(records) == 1200
    assert len({r.identifier for r in records}) == 1200
    assert len(conn.searches) == -(-1200 // PAGE_SIZE)


def test_page_size_capped_by_server(directory, conn):
    conn.server_page_limit = 2
    for i in range(5):
        conn.add_user(f"CN=Stagiaire {i},{ROOT_DN}", f"Stagiaire {i}", f"stagiaire{i}")

    assert [r.identifier for r in directory.list_records(ROOT_DN)] == [f"stagiaire{i}" for i in range(5)]
    assert len(conn.searches) == 3


def test_create_user_rolls_back_when_password_is_refused(directory, conn):
    conn.refused = {'modify'}
    with pytest.raises(DirectoryWriteError, match="unwillingToPerform"):
        directory.create_user(COMPTA, "Zoé", "Leroy", "zoe.leroy", "Xanadu-Compta-2026", "xanadu.local")

    dn = f"CN=Zoé LEROY,{COMPTA}"
    assert [w[:2] for w in conn.writes] == [('add', dn), ('modify', dn), ('delete', dn)]
    with pytest.raises(RecordNotFound):
        directory.fetch_record("zoe.leroy")

    conn.refused = set()
    assert directory.create_user(COMPTA, "Zoé", "Leroy", "zoe.leroy", "Xanadu-Compta-2026", "xanadu.local").enabled


def test_failed_rollback_keeps_original_error(directory, conn):
    conn.refused = {'modify', 'delete'}
    with pytest.raises(DirectoryWriteError, match="Mot de passe initial de zoe.leroy"):
        directory.create_user(COMPTA, "Zoé", "Leroy", "zoe.leroy", "Xanadu-Compta-2026", "xanadu.local")


def test_create_user_adds_then_sets_password_then_enables(directory, conn):
    record = directory.create_user(COMPTA, "Zoé", "Leroy", "zoe.leroy", "Xanadu-Compta-2026", "xanadu.local")

    assert [w[0] for w in conn.writes] == ['add', 'modify', 'modify']
    dn, attributes = conn.writes[0][1], conn.writes[0][2]
    assert dn == f"CN=Zoé LEROY,{COMPTA}"
    assert attributes['userPrincipalName'] == "zoe.leroy@xanadu.local"
    assert attributes['userAccountControl'] == "514"
    assert conn.writes[1][2] == {'unicodePwd': [(MODIFY_REPLACE, [encode_password("Xanadu-Compta-2026")])]}
    assert conn.writes[2][2]['pwdLastSet'] == [(MODIFY_REPLACE, ['0'])]
    assert record.identifier == "zoe.leroy"
    assert record.enabled


def test_create_user_refuses_taken_identifier(directory, conn):
    with pytest.raises(DirectoryWriteError, match="déjà utilisé"):
        directory.create_user(COMPTA, "Jean", "Dupont", "jean.dupont", "Xanadu-Compta-2026", "xanadu.local")
    assert conn.writes == []


def test_encode_password_is_quoted_utf16():
    assert encode_password("Abc") == '"Abc"'.encode('utf-16-le')


def test_reset_password_without_forced_change(directory, conn):
    directory.reset_password("jean.dupont", "Nouveau-Secret-42", must_change_password=False)
    assert len(conn.writes) == 1
    op, dn, changes = conn.writes[0]
    assert (op, dn) == ('modify', f"CN=Jean DUPONT,{COMPTA}")
    assert 'unicodePwd' in changes


def test_set_enabled_toggles_disable_flag(directory):
    assert directory.set_enabled("alice.martin", True).enabled
    assert not directory.set_enabled("alice.martin", False).enabled


def test_refused_write_raises(directory, conn):
    conn.refused = {'delete'}
    with pytest.raises(DirectoryWriteError, match="unwillingToPerform"):
        directory.delete_user("jean.dupont")


def test_delete_user_returns_removed_record(directory, conn):
    record = directory.delete_user("jean.dupont")
    assert record.identifier == "jean.dupont"
    with pytest.raises(RecordNotFound):
        directory.fetch_record("jean.dupont")


def test_close_unbinds(directory, conn):
    directory.close()
    assert conn.unbound


def test_connect_reports_refused_bind(monkeypatch):
    class RefusingConnection:
        def __init__(self, server, **kwargs):
            self.kwargs = kwargs
            self.result = {'description': 'invalidCredentials'}

        def bind(self):
            return False

    monkeypatch.setattr(directory_module, "Connection", RefusingConnection)
    with pytest.raises(DirectoryConnectionError, match="invalidCredentials"):
        LdapDirectory.connect(Config({"bind_user": "svc"}), "mauvais")


def test_connect_wraps_ldap_errors(monkeypatch):
    def unreachable(*args, **kwargs):
        raise LDAPException("serveur injoignable")

    monkeypatch.setattr(directory_module, "Connection", unreachable)
    with pytest.raises(DirectoryConnectionError, match="injoignable"):
        LdapDirectory.connect(Config({"bind_user": "svc"}), "secret")
