"""
Bundled stack declarations.
"""

from stackweave.topology.gke import KUBECONFIG_TEMPLATE, declare_gke_stack

__all__ = ["declare_gke_stack", "KUBECONFIG_TEMPLATE"]
