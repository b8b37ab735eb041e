"""Run clusterctl with ``python -m clusterctl_core``."""

import sys

from clusterctl_core.cli import main

sys.exit(main())
