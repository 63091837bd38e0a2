import json
import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from xanadu_core.errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path(__file__).parent / "xanadu.json"
PASSWORD_ENV = "XANADU_AD_PASSWORD"
CONFIG_ENV = "XANADU_CONFIG"

DEFAULTS = {
    "server": "dc01.xanadu.local",
    "port": 389,
    "use_ssl": False,
    "domain": "XANADU",
    "bind_user": "",
    "base_dn": "DC=xanadu,DC=local",
    "browse_root": None,
    "default_user_ou": None,
    "upn_suffix": "xanadu.local",
    "journal_path": "../data/journal.db",
    "log_file": "../logs/xanadu.log",
    "logging_enabled": True,
    "quit_key": "q",
    "max_browse_steps": 1000,
}

_TYPES = {
    "server": str,
    "port": int,
    "use_ssl": bool,
    "domain": str,
    "bind_user": str,
    "base_dn": str,
    "upn_suffix": str,
    "journal_path": str,
    "log_file": str,
    "logging_enabled": bool,
    "quit_key": str,
    "max_browse_steps": int,
}


class Config:
    def __init__(self, data=None, path=None):
        self.path = Path(path) if path else None
        self.data = dict(DEFAULTS)
        self.data.update(data or {})
        self._validate()

    def _validate(self):
        unknown = set(self.data) - set(DEFAULTS)
        if unknown:
            raise ConfigurationError(f"Clés inconnues dans la configuration : {', '.join(sorted(unknown))}")

        for key, expected in _TYPES.items():
            value = self.data[key]
            # bool est une sous-classe de int : on refuse True comme numéro de port
            if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
                raise ConfigurationError(
                    f"'{key}' doit être de type {expected.__name__}, reçu {type(value).__name__}"
                )

        if not self.data["base_dn"].strip():
            raise ConfigurationError("'base_dn' ne peut pas être vide")
        if len(self.data["quit_key"]) != 1:
            raise ConfigurationError("'quit_key' doit être un seul caractère")
        if self.data["max_browse_steps"] < 1:
            raise ConfigurationError("'max_browse_steps' doit être positif")

    # ---- connexion ----
    @property
    def server(self):
        return self.data["server"]

    @property
    def port(self):
        return self.data["port"]

    @property
    def use_ssl(self):
        return self.data["use_ssl"]

    @property
    def domain(self):
        return self.data["domain"]

    @property
    def bind_user(self):
        return self.data["bind_user"]

    @property
    def bind_principal(self):
        """Identifiant NTLM sous la forme DOMAINE\\utilisateur."""
        user = self.bind_user
        if not user or "\\" in user or "@" in user:
            return user
        return f"{self.domain}\\{user}"

    # ---- arborescence ----
    @property
    def base_dn(self):
        return self.data["base_dn"]

    @property
    def browse_root(self):
        """Racine du navigateur d'OU ; la racine du domaine par défaut."""
        return self.data["browse_root"] or self.base_dn

    @property
    def default_user_ou(self):
        return self.data["default_user_ou"] or f"CN=Users,{self.base_dn}"

    @property
    def upn_suffix(self):
        return self.data["upn_suffix"]

    # ---- application ----
    def _relative(self, value):
        # Les chemins relatifs sont résolus depuis le dossier du fichier de configuration
        p = Path(value)
        if p.is_absolute() or self.path is None:
            return str(p)
        return str((self.path.parent / p).resolve())

    @property
    def journal_path(self):
        return self._relative(self.data["journal_path"])

    @property
    def log_file(self):
        return self._relative(self.data["log_file"])

    @property
    def logging_enabled(self):
        return self.data["logging_enabled"]

    @property
    def quit_key(self):
        return self.data["quit_key"]

    @property
    def max_browse_steps(self):
        return self.data["max_browse_steps"]

    def bind_password(self):
        """Mot de passe du compte de service (environnement ou fichier .env), jamais dans le JSON."""
        load_dotenv(find_dotenv())
        return os.getenv(PASSWORD_ENV) or None


def load_config(path=None):
    path = Path(path or os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Fichier de configuration introuvable : {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Configuration JSON invalide ({path}) : {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"La configuration doit être un objet JSON : {path}")
    return Config(data, path)
