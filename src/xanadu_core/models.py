import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ldap3.utils.dn import parse_dn, to_dn

# Bits de userAccountControl utilisés par l'outil
UAC_ACCOUNTDISABLE = 0x0002
UAC_NORMAL_ACCOUNT = 0x0200
UAC_DONT_EXPIRE_PASSWORD = 0x10000

_ESCAPED = re.compile(r'\\([0-9A-Fa-f]{2})|\\(.)|([^\\]+)')


def split_dn(path: str) -> List[str]:
    """Découpe un DN en RDN en respectant les virgules échappées."""
    return [part.strip() for part in to_dn(path) if part.strip()]


def parent_path(path: str) -> Optional[str]:
    """DN du conteneur parent, ou None pour la racine du domaine."""
    parts = split_dn(path)
    if len(parts) <= 1:
        return None
    return ",".join(parts[1:])


def child_path(rdn: str, path: str) -> str:
    return f"{rdn},{path}"


def _unescape(value: str) -> str:
    """Décode les échappements RFC 4514 : '\\,' comme '\\2C' ou '\\C3\\A9'."""
    raw = bytearray()
    for hex_pair, char, text in _ESCAPED.findall(value):
        if hex_pair:
            raw += bytes.fromhex(hex_pair)
        else:
            raw += (char or text).encode("utf-8")
    return raw.decode("utf-8", errors="replace")


def leaf_name(path: str) -> str:
    """Valeur du premier RDN : 'OU=Compta,DC=x' -> 'Compta'."""
    parts = split_dn(path)
    if not parts:
        return ""
    _, value, _ = parse_dn(parts[0])[0]
    return _unescape(value).strip()


def normalize_dn(path: str) -> str:
    out = []
    for part in split_dn(path):
        attr, _, value = part.partition("=")
        out.append(f"{attr.strip().lower()}={value.strip().lower()}")
    return ",".join(out)


def same_dn(a: str, b: str) -> bool:
    return normalize_dn(a) == normalize_dn(b)


@dataclass(frozen=True)
class Container:
    """Unité d'organisation (ou conteneur) de l'annuaire."""

    name: str
    path: str

    @property
    def rdn(self) -> str:
        return split_dn(self.path)[0]

    @property
    def parent(self) -> Optional[str]:
        return parent_path(self.path)


@dataclass(frozen=True)
class Record:
    """Compte utilisateur lu dans l'annuaire."""

    identifier: str
    name: str
    path: str
    display_name: Optional[str] = None
    attributes: Dict[str, object] = field(default_factory=dict, compare=False, hash=False)

    @property
    def label(self) -> str:
        return self.display_name or self.name or self.identifier

    @property
    def container(self) -> Optional[str]:
        return parent_path(self.path)

    @property
    def user_account_control(self) -> int:
        try:
            return int(self.attributes.get("userAccountControl") or UAC_NORMAL_ACCOUNT)
        except (TypeError, ValueError):
            return UAC_NORMAL_ACCOUNT

    @property
    def enabled(self) -> bool:
        return not self.user_account_control & UAC_ACCOUNTDISABLE

    def summary_lines(self):
        """Fiche lisible du compte pour la visionneuse."""
        attrs = self.attributes
        groups = attrs.get("memberOf") or []
        if isinstance(groups, str):
            groups = [groups]

        lines = [
            f"Nom affiché      : {self.label}",
            f"Identifiant      : {self.identifier}",
            f"UPN              : {attrs.get('userPrincipalName') or '—'}",
            f"Prénom / Nom     : {attrs.get('givenName') or '—'} {attrs.get('sn') or ''}".rstrip(),
            f"Mail             : {attrs.get('mail') or '—'}",
            f"Description      : {attrs.get('description') or '—'}",
            f"État             : {'actif' if self.enabled else 'désactivé'}",
            f"Créé le          : {attrs.get('whenCreated') or '—'}",
            f"Dernière connexion : {attrs.get('lastLogonTimestamp') or '—'}",
            f"Emplacement      : {self.container or '—'}",
            "",
            f"Groupes ({len(groups)}) :",
        ]
        lines.extend(f"  - {leaf_name(g)}" for g in sorted(groups, key=str.lower))
        return lines
