"""
Utility package setup.

Enables pandas Copy-on-Write globally so slicing the train/test subsets out of
the source dataset never mutates it. From pandas 3 on it is the only mode and
the option is deprecated.
"""

import pandas as pd

PANDAS_MAJOR = int(pd.__version__.split('.')[0])

if PANDAS_MAJOR < 3:
    pd.options.mode.copy_on_write = True
