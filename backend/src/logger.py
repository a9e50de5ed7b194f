import logging

ROOT_LOGGER = "wfc"


def get_logger(name="proxy"):
    # Children of ROOT_LOGGER share one handler so set_verbose reaches all of them.
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(asctime)s %(name)s: %(message)s"))
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return root.getChild(name)


def set_verbose(verbose: bool):
    logging.getLogger(ROOT_LOGGER).setLevel(logging.DEBUG if verbose else logging.INFO)
