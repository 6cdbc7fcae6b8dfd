# Keep this TINY so importing the package never drags in heavy deps.
from . import lib  # so: from modules.job_scout import lib
from .main import run  # so: from modules.job_scout import run

__all__ = ["lib", "run"]
