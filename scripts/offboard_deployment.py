#!/usr/bin/env python3
"""
Offboard a deployment from Argo CD.

Usage:
  python3 scripts/offboard_deployment.py --app-name hello-world \
      --namespace essesseff-hello-world-go-template --env dev --repo-id 123456

  # Preview only
  python3 scripts/offboard_deployment.py --config offboard.yaml --dry-run

Requirements:
  - kubectl configured with access to the Argo CD cluster
"""

import sys

from offboarding.cli import main


if __name__ == "__main__":
    sys.exit(main())
