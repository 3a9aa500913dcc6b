"""
Offboard a deployment from an Argo CD managed cluster.

Removes the deployment's App-of-Apps, repository secrets and notification
wiring, leaving the shared Argo CD notification setup in place.
"""

__version__ = "0.1.0"
