"""Allow ``python -m multiparty``."""

import sys

from .main import main

sys.exit(main())
