"""
scriptload: dependency-resolving script loader

Scripts declare the scripts they depend on, the code blocks they contribute
and the namespaces they need. The loader builds the dependency tree while
loading, then runs every code block after the blocks of its dependencies.
"""

__version__ = "0.95.0"


from ._error import *
from ._log import *
from ._path import *
from ._constants import *
from ._namespace import *
from ._unit import *
from ._tree import *
from ._fetch import *
from ._config import *
from ._export import *
from ._session import *
from ._load import *
