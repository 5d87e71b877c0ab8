"""kapp-packages: package management over Carvel kapp-controller resources.

Lists, describes, installs and updates Carvel packages and manages the
PackageRepository objects (and their credential secrets) that make them
available in a cluster.
"""

__version__ = "0.1.0"
