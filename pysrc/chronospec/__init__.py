from ._pychronospec import *
from ._pychronospec import (  # for pickling and the docs
    __all__,
    __version__,
    _unpkl_instant,
    _unpkl_period,
)
