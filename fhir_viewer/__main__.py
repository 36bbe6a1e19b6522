"""Permet ``python -m fhir_viewer``."""

import sys

from fhir_viewer.cli import main

sys.exit(main())
