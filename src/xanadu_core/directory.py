import logging

from ldap3 import ALL, LEVEL, MODIFY_REPLACE, NTLM, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn

from xanadu_core.errors import (
    DirectoryConnectionError,
    DirectoryQueryError,
    DirectoryWriteError,
    RecordNotFound,
)
from xanadu_core.models import (
    UAC_ACCOUNTDISABLE,
    UAC_NORMAL_ACCOUNT,
    Container,
    Record,
    child_path,
    leaf_name,
)

logger = logging.getLogger(__name__)

CONTAINER_FILTER = '(|(objectClass=organizationalUnit)(objectClass=container))'
USER_FILTER = '(&(objectClass=user)(!(objectClass=computer)))'

USER_ATTRIBUTES = [
    'cn', 'displayName', 'givenName', 'sn', 'sAMAccountName', 'userPrincipalName',
    'mail', 'description', 'userAccountControl', 'whenCreated', 'lastLogonTimestamp',
    'memberOf',
]

RESULT_SUCCESS = 0
PAGE_SIZE = 500
PAGED_RESULTS_OID = '1.2.840.113556.1.4.319'


def _first(value):
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def encode_password(password):
    """Format attendu par l'attribut unicodePwd : entre guillemets, en UTF-16-LE."""
    return f'"{password}"'.encode('utf-16-le')


class LdapDirectory:
    """
    Accès à l'annuaire Active Directory de Xanadu via ldap3.

    Les lectures ne portent que sur un niveau (scope LEVEL) : c'est le navigateur
    qui descend dans l'arborescence, un conteneur à la fois.
    """

    def __init__(self, connection, base_dn):
        self.conn = connection
        self.base_dn = base_dn

    @classmethod
    def connect(cls, config, password):
        """Ouvre et authentifie la connexion décrite par la configuration."""
        try:
            server = Server(
                config.server,
                port=config.port,
                use_ssl=config.use_ssl,
                get_info=ALL,
                connect_timeout=10,
            )
            conn = Connection(
                server,
                user=config.bind_principal,
                password=password,
                authentication=NTLM,
                auto_bind=False,
                receive_timeout=30,
            )
            if not conn.bind():
                raise DirectoryConnectionError(
                    f"Authentification refusée par {config.server} : {conn.result.get('description')}"
                )
        except LDAPException as exc:
            raise DirectoryConnectionError(f"Connexion impossible à {config.server} : {exc}") from exc

        logger.info(f"Connecté à {config.server}:{config.port} en tant que {config.bind_principal}")
        return cls(conn, config.base_dn)

    def close(self):
        try:
            self.conn.unbind()
        except LDAPException as exc:
            logger.warning(f"Fermeture de la connexion LDAP : {exc}")

    # ---- lecture ----
    def _search(self, base, search_filter, scope, attributes):
        """Recherche paginée : AD plafonne chaque réponse à 1000 entrées."""
        entries = []
        cookie = None
        while True:
            try:
                self.conn.search(
                    search_base=base,
                    search_filter=search_filter,
                    search_scope=scope,
                    attributes=attributes,
                    paged_size=PAGE_SIZE,
                    paged_cookie=cookie,
                )
            except LDAPException as exc:
                raise DirectoryQueryError(f"Recherche impossible sous {base} : {exc}") from exc

            result = self.conn.result or {}
            if result.get('result', RESULT_SUCCESS) != RESULT_SUCCESS:
                raise DirectoryQueryError(
                    f"Recherche refusée sous {base} : {result.get('description')} {result.get('message', '')}".strip()
                )
            entries.extend(r for r in (self.conn.response or []) if r.get('type') == 'searchResEntry')

            cookie = result.get('controls', {}).get(PAGED_RESULTS_OID, {}).get('value', {}).get('cookie')
            if not cookie:
                return entries

    def list_child_containers(self, path):
        entries = self._search(path, CONTAINER_FILTER, LEVEL, ['name', 'ou', 'cn'])
        containers = []
        for entry in entries:
            attrs = entry.get('attributes', {})
            name = _first(attrs.get('name')) or _first(attrs.get('ou')) or _first(attrs.get('cn')) \
                or leaf_name(entry['dn'])
            containers.append(Container(name=str(name), path=entry['dn']))
        return containers

    def list_records(self, path):
        return [self._to_record(e) for e in self._search(path, USER_FILTER, LEVEL, USER_ATTRIBUTES)]

    def fetch_record(self, identifier):
        search_filter = f'(&{USER_FILTER}(sAMAccountName={escape_filter_chars(identifier)}))'
        entries = self._search(self.base_dn, search_filter, SUBTREE, USER_ATTRIBUTES)
        if not entries:
            raise RecordNotFound(identifier)
        if len(entries) > 1:
            logger.warning(f"{len(entries)} comptes pour sAMAccountName={identifier}, le premier est retenu")
        return self._to_record(entries[0])

    @staticmethod
    def _to_record(entry):
        raw = entry.get('attributes', {})
        attrs = {}
        for key in USER_ATTRIBUTES:
            value = raw.get(key)
            attrs[key] = value if key == 'memberOf' else _first(value)
        return Record(
            identifier=str(attrs.get('sAMAccountName') or ''),
            name=str(attrs.get('cn') or leaf_name(entry['dn'])),
            path=entry['dn'],
            display_name=attrs.get('displayName') or None,
            attributes=attrs,
        )

    # ---- écriture ----
    def _write(self, operation, description, *args, **kwargs):
        try:
            ok = getattr(self.conn, operation)(*args, **kwargs)
        except LDAPException as exc:
            raise DirectoryWriteError(f"{description} : {exc}") from exc
        if not ok:
            result = self.conn.result or {}
            raise DirectoryWriteError(
                f"{description} : {result.get('description')} {result.get('message', '')}".strip()
            )
        logger.info(description)

    def create_user(self, container_path, first_name, last_name, identifier, password,
                    upn_suffix, must_change_password=True):
        """Crée un compte activé dans `container_path` et renvoie sa fiche relue."""
        try:
            self.fetch_record(identifier)
        except RecordNotFound:
            pass
        else:
            raise DirectoryWriteError(f"L'identifiant {identifier} est déjà utilisé")

        cn = f"{first_name} {last_name.upper()}".strip()
        dn = child_path(f"CN={escape_rdn(cn)}", container_path)
        attributes = {
            'objectClass': ['top', 'person', 'organizationalPerson', 'user'],
            'cn': cn,
            'givenName': first_name,
            'sn': last_name.upper(),
            'displayName': cn,
            'sAMAccountName': identifier,
            'userPrincipalName': f"{identifier}@{upn_suffix}",
            'userAccountControl': str(UAC_NORMAL_ACCOUNT | UAC_ACCOUNTDISABLE),
        }
        self._write('add', f"Création de {dn}", dn, attributes=attributes)

        # AD refuse d'activer un compte sans mot de passe : on l'active en dernier
        try:
            self._write('modify', f"Mot de passe initial de {identifier}", dn,
                        {'unicodePwd': [(MODIFY_REPLACE, [encode_password(password)])]})
            changes = {'userAccountControl': [(MODIFY_REPLACE, [str(UAC_NORMAL_ACCOUNT)])]}
            if must_change_password:
                changes['pwdLastSet'] = [(MODIFY_REPLACE, ['0'])]
            self._write('modify', f"Activation de {identifier}", dn, changes)
        except DirectoryWriteError:
            self._rollback_add(dn)
            raise
        return self.fetch_record(identifier)

    def _rollback_add(self, dn):
        """Supprime un compte à moitié créé ; l'erreur d'origine reste celle remontée."""
        try:
            deleted = self.conn.delete(dn)
        except LDAPException as exc:
            logger.error(f"Annulation de la création de {dn} impossible : {exc}")
            return
        if deleted:
            logger.warning(f"Création de {dn} annulée")
        else:
            logger.error(f"Annulation de la création de {dn} refusée : {(self.conn.result or {}).get('description')}")

    def reset_password(self, identifier, password, must_change_password=True):
        record = self.fetch_record(identifier)
        self._write('modify', f"Réinitialisation du mot de passe de {identifier}", record.path,
                    {'unicodePwd': [(MODIFY_REPLACE, [encode_password(password)])]})
        if must_change_password:
            self._write('modify', f"Changement de mot de passe exigé pour {identifier}", record.path,
                        {'pwdLastSet': [(MODIFY_REPLACE, ['0'])]})

    def set_enabled(self, identifier, enabled):
        record = self.fetch_record(identifier)
        uac = record.user_account_control
        uac = uac & ~UAC_ACCOUNTDISABLE if enabled else uac | UAC_ACCOUNTDISABLE
        action = "Activation" if enabled else "Désactivation"
        self._write('modify', f"{action} de {identifier}", record.path,
                    {'userAccountControl': [(MODIFY_REPLACE, [str(uac)])]})
        return self.fetch_record(identifier)

    def delete_user(self, identifier):
        record = self.fetch_record(identifier)
        self._write('delete', f"Suppression de {record.path}", record.path)
        return record
