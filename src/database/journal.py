import os
import sqlite3

RESULTAT_OK = "OK"
RESULTAT_ECHEC = "ECHEC"


def creer_journal(path_db):
    dossier = os.path.dirname(os.path.abspath(path_db))
    os.makedirs(dossier, exist_ok=True)

    conn = sqlite3.connect(path_db)
    try:
        conn.executescript("""
        -- Une ligne par opération d'administration effectuée depuis la console
        CREATE TABLE IF NOT EXISTS operation_log (
            operation_id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            operateur TEXT NOT NULL,
            action TEXT NOT NULL,
            cible TEXT NOT NULL,
            resultat TEXT NOT NULL,
            detail TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_operation_log_cible ON operation_log(cible);
        """)
        conn.commit()
    finally:
        conn.close()


def enregistrer_operation(path_db, operateur, action, cible, resultat, detail=None):
    conn = sqlite3.connect(path_db)
    try:
        cursor = conn.cursor()
        cursor.execute("""
        INSERT INTO operation_log (operateur, action, cible, resultat, detail)
        VALUES (?, ?, ?, ?, ?)
        """, (operateur, action, cible, resultat, detail))
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def lister_operations(path_db, limite=100):
    """Dernières opérations, de la plus récente à la plus ancienne."""
    conn = sqlite3.connect(path_db)
    try:
        cursor = conn.cursor()
        cursor.execute("""
        SELECT created_at, operateur, action, cible, resultat, detail
        FROM operation_log
        ORDER BY operation_id DESC
        LIMIT ?
        """, (limite,))
        return cursor.fetchall()
    finally:
        conn.close()
