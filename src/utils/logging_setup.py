import logging
import os

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(log_file, enabled=True, level=logging.INFO):
    """
    Configure le logger racine de l'application.

    curses occupe l'écran : on n'écrit jamais sur la console, seulement dans
    `log_file`. Si la journalisation est désactivée, un NullHandler absorbe
    les messages.

    Returns:
        logging.Logger: le logger racine configuré.
    """
    logger = logging.getLogger()
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if not enabled or not log_file:
        logger.addHandler(logging.NullHandler())
        return logger

    log_dir = os.path.dirname(os.path.abspath(log_file))
    os.makedirs(log_dir, exist_ok=True)

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    logger.setLevel(level)
    logger.addHandler(file_handler)

    # ldap3 est très bavard en DEBUG
    logging.getLogger("ldap3").setLevel(logging.WARNING)
    return logger
