import logging
import time
from contextlib import contextmanager


def make_logger(name: str = "epimatch", level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(name)s: %(message)s")
        h.setFormatter(fmt)
        logger.addHandler(h)
    logger.setLevel(level)
    return logger


def level_from_verbosity(verbose: int) -> int:
    """0 -> WARNING, 1 -> INFO, 2+ -> DEBUG."""
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


@contextmanager
def timed(logger: logging.Logger, msg: str):
    t0 = time.perf_counter()
    logger.info(f"{msg} ...")
    yield
    dt = time.perf_counter() - t0
    logger.info(f"{msg} done in {dt:.3f}s")
